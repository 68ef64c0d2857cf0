# tryon/errors.py
from typing import Any, Dict, Optional


class TryOnError(Exception):
    """Base for every failure a request can end with.

    Carries the message shown to the caller and the HTTP status class:
    400 for caller input defects, 500 for server/environment defects,
    502 for upstream defects.
    """

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message}


class InvalidQuery(TryOnError):
    status_code = 400


class MissingCredential(TryOnError):
    status_code = 500


class MissingImages(TryOnError):
    status_code = 400


class ClientUnavailable(TryOnError):
    status_code = 500


class NoImageReturned(TryOnError):
    status_code = 500


class UpstreamError(TryOnError):
    """An outbound call failed or came back with a non-success status."""

    status_code = 502

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
        status_code: Optional[int] = None,
        include_details: bool = True,
    ):
        super().__init__(message, status_code=status_code)
        self.status = status
        self.body = body
        self.include_details = include_details

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.include_details:
            payload["status"] = self.status
            payload["body"] = self.body
        return payload
