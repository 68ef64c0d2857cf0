# tryon/compose.py
import asyncio
import base64
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Union

from .config import Settings
from .errors import (
    ClientUnavailable,
    MissingCredential,
    MissingImages,
    NoImageReturned,
    UpstreamError,
)
from .prompts import TRYON_PROMPT
from .schemas import TryOnPayload, TryOnResponse

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPE = "image/png"
_DATA_URI_PREFIX = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")

# Low temperature so the model follows the fixed instructions closely
GENERATION_CONFIG = {
    "temperature": 0.2,
    "candidate_count": 1,
}


# ---------------------------------------------------------
# Image payloads
# ---------------------------------------------------------
def strip_data_uri(image: str) -> str:
    """Return the base64 payload of a data URI, or the string unchanged."""
    return _DATA_URI_PREFIX.sub("", image.strip(), count=1)


def to_data_uri(data: Union[bytes, str]) -> str:
    if isinstance(data, bytes):
        data = base64.b64encode(data).decode("ascii")
    return f"data:{IMAGE_MIME_TYPE};base64,{data}"


def inline_image(image: str) -> dict:
    return {"mime_type": IMAGE_MIME_TYPE, "data": base64.b64decode(strip_data_uri(image))}


def build_contents(user_image: str, cloth_image: str) -> list:
    # Order matters: prompt, then the user, then the garment reference
    return [
        TRYON_PROMPT,
        inline_image(user_image),
        inline_image(cloth_image),
    ]


# ---------------------------------------------------------
# Response parts
# ---------------------------------------------------------
@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class InlineImagePart:
    mime_type: str
    data: Union[bytes, str]


@dataclass(frozen=True)
class OtherPart:
    raw: Any


Part = Union[TextPart, InlineImagePart, OtherPart]


def _field(obj: Any, *names: str) -> Any:
    for name in names:
        if isinstance(obj, Mapping):
            value = obj.get(name)
        else:
            value = getattr(obj, name, None)
        if value is not None:
            return value
    return None


def classify_part(part: Any) -> Part:
    inline = _field(part, "inline_data", "inlineData")
    data = _field(inline, "data") if inline is not None else None
    if data:
        return InlineImagePart(mime_type=_field(inline, "mime_type", "mimeType") or "", data=data)
    text = _field(part, "text")
    if isinstance(text, str) and text:
        return TextPart(text=text)
    return OtherPart(raw=part)


def response_parts(response: Any) -> List[Any]:
    """Parts of the first candidate, or [] when the response has none."""
    candidates = _field(response, "candidates") or []
    if not candidates:
        return []
    content = _field(candidates[0], "content")
    return list(_field(content, "parts") or []) if content is not None else []


def first_image(parts: Iterable[Any]) -> Optional[InlineImagePart]:
    for raw in parts:
        part = classify_part(raw)
        if isinstance(part, InlineImagePart):
            return part
    return None


# ---------------------------------------------------------
# Gemini client
# ---------------------------------------------------------
def load_image_model(settings: Settings):
    """
    Build the Gemini image model once at startup.
    Returns None when no key is configured (reported per request as a
    missing credential); raises ClientUnavailable when the SDK is unusable.
    """
    if not settings.genai_api_key:
        return None
    try:
        import google.generativeai as genai

        genai.configure(api_key=settings.genai_api_key)
        return genai.GenerativeModel(model_name=settings.image_model)
    except Exception as e:
        raise ClientUnavailable(
            "GenAI SDK not installed on server or failed to import: " + str(e)
        ) from e


class CompositionOrchestrator:
    def __init__(self, settings: Settings, model: Any = None, unavailable_reason: Optional[str] = None):
        self.settings = settings
        self.model = model
        self.unavailable_reason = unavailable_reason

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompositionOrchestrator":
        try:
            model = load_image_model(settings)
        except ClientUnavailable as e:
            logger.error(e.message)
            return cls(settings, model=None, unavailable_reason=e.message)
        return cls(settings, model=model)

    async def compose(self, payload: TryOnPayload) -> TryOnResponse:
        if not payload.userImage or not payload.clothImage:
            raise MissingImages("Both images are required.")
        if not self.settings.genai_api_key:
            raise MissingCredential("Server misconfigured: missing GENAI_API_KEY")
        if self.model is None:
            raise ClientUnavailable(
                self.unavailable_reason or "GenAI SDK not installed on server or failed to import: no client"
            )

        contents = build_contents(payload.userImage, payload.clothImage)
        timeout = self.settings.generate_timeout
        try:
            response = await asyncio.wait_for(
                self.model.generate_content_async(
                    contents,
                    generation_config=GENERATION_CONFIG,
                    request_options={"timeout": timeout},
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Image generation timed out after {timeout:g}s")
            raise UpstreamError(
                f"Image generation timed out after {timeout:g}s", status_code=500, include_details=False
            ) from e
        except Exception as e:
            logger.warning(f"Image generation failed: {e!r}")
            raise UpstreamError(str(e), status_code=500, include_details=False) from e

        image = first_image(response_parts(response))
        if image is None:
            feedback = _field(response, "prompt_feedback")
            block_reason = _field(feedback, "block_reason") if feedback is not None else None
            logger.warning(f"No image returned from model. Block reason: {block_reason or 'Unknown'}")
            raise NoImageReturned("No image returned from model.")

        logger.info("Try-on image generated")
        return TryOnResponse(image=to_data_uri(image.data))
