# tryon/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import router
from .compose import CompositionOrchestrator
from .config import Settings
from .deps import add_cors
from .errors import TryOnError
from .logger import setup_logger
from .search import SearchNormalizer

logger = logging.getLogger("tryon")


# ---------------------------------------------------------
# Error handlers: every failure ends as {"error": ...}
# ---------------------------------------------------------
async def tryon_error_handler(request: Request, exc: TryOnError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid request body."})


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_app(
    settings: Optional[Settings] = None,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    orchestrator: Optional[CompositionOrchestrator] = None,
) -> FastAPI:
    """
    Build the API. The settings are read once here; the HTTP client and the
    Gemini model are created at startup unless injected.
    """
    settings = settings or Settings.from_env()
    setup_logger("tryon", getattr(logging, settings.log_level, logging.INFO))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = http_client or httpx.AsyncClient()
        app.state.settings = settings
        app.state.http_client = client
        app.state.search = SearchNormalizer(settings, client)
        app.state.orchestrator = orchestrator or CompositionOrchestrator.from_settings(settings)
        logger.info(
            f"Search key present: {bool(settings.scraper_api_key)}, "
            f"GenAI key present: {bool(settings.genai_api_key)}, model: {settings.image_model}"
        )
        try:
            yield
        finally:
            if http_client is None:
                await client.aclose()

    app = FastAPI(
        title="AI Virtual Try-On API",
        description="Product search proxy and Gemini-based garment try-on.",
        version="0.1.0",
        lifespan=lifespan,
    )
    add_cors(app, settings.cors_origins)

    app.add_exception_handler(TryOnError, tryon_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(router)
    return app
