# tryon/config.py
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

SCRAPER_SEARCH_URL = "https://api.scraperapi.com/structured/amazon/search"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image-preview"
DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")

# Accepted names for the Gemini key, first one set wins
GENAI_KEY_NAMES = ("GENAI_API_KEY", "GOOGLE_API_KEY", "GEMINI_API_KEY")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, read once at startup and never mutated."""

    scraper_api_key: Optional[str] = None
    genai_api_key: Optional[str] = None
    port: int = 4000
    country: str = "IN"
    tld: str = "in"
    search_url: str = SCRAPER_SEARCH_URL
    image_model: str = DEFAULT_IMAGE_MODEL
    search_timeout: float = 30.0
    generate_timeout: float = 120.0
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        if environ is None:
            # Load .env for local dev, real environment variables take precedence
            load_dotenv()
            environ = os.environ

        genai_key = None
        for name in GENAI_KEY_NAMES:
            genai_key = _clean(environ.get(name))
            if genai_key:
                break

        origins = _clean(environ.get("CORS_ORIGINS"))
        cors_origins = (
            tuple(o.strip() for o in origins.split(",") if o.strip())
            if origins
            else DEFAULT_CORS_ORIGINS
        )

        return cls(
            scraper_api_key=_clean(environ.get("SCRAPERAPI_KEY")),
            genai_api_key=genai_key,
            port=int(environ.get("PORT") or 4000),
            country=_clean(environ.get("COUNTRY")) or "IN",
            tld=_clean(environ.get("TLD")) or "in",
            search_url=_clean(environ.get("SCRAPER_SEARCH_URL")) or SCRAPER_SEARCH_URL,
            image_model=_clean(environ.get("GENAI_IMAGE_MODEL")) or DEFAULT_IMAGE_MODEL,
            search_timeout=float(environ.get("SEARCH_TIMEOUT_SECONDS") or 30.0),
            generate_timeout=float(environ.get("GENERATE_TIMEOUT_SECONDS") or 120.0),
            cors_origins=cors_origins,
            log_level=(_clean(environ.get("LOG_LEVEL")) or "INFO").upper(),
        )
