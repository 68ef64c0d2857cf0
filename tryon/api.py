# tryon/api.py
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Response

from .compose import CompositionOrchestrator
from .config import Settings
from .deps import get_http_client, get_orchestrator, get_search, get_settings
from .schemas import HealthResponse, SearchResponse, TryOnPayload, TryOnResponse
from .search import SearchNormalizer

router = APIRouter()

# Some image hosts refuse requests without browser-like headers
PROXY_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36",
    "Accept": "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
    "Referer": "https://www.google.com/",
}


# ---------------------------------------------------------
# Health check
# ---------------------------------------------------------
@router.get("/health", response_model=HealthResponse)
def health(settings: Settings = Depends(get_settings)):
    return HealthResponse(
        ok=True,
        api_key_present=bool(settings.scraper_api_key),
        genai_key_present=bool(settings.genai_api_key),
    )


# ---------------------------------------------------------
# Product search
# ---------------------------------------------------------
@router.get("/search", response_model=SearchResponse)
async def search(
    q: Optional[str] = None,
    query: Optional[str] = None,
    normalizer: SearchNormalizer = Depends(get_search),
):
    return await normalizer.search(q or query)


# ---------------------------------------------------------
# Product image proxy (lets the browser turn a search hit into a clothImage)
# ---------------------------------------------------------
@router.get("/proxy-image")
async def proxy_image(
    url: str,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    try:
        response = await client.get(
            url, follow_redirects=True, timeout=settings.search_timeout, headers=PROXY_HEADERS
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise HTTPException(status_code=e.response.status_code, detail=f"Image server error: {e.response.status_code}")
    except httpx.RequestError as e:
        raise HTTPException(status_code=400, detail=f"Failed to fetch image: {e}")

    content_type = response.headers.get("content-type", "")
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="URL is not a direct image link.")
    return Response(content=response.content, media_type=content_type)


# ---------------------------------------------------------
# Try-on generation
# ---------------------------------------------------------
@router.post("/api/generate", response_model=TryOnResponse)
async def generate(
    payload: TryOnPayload,
    orchestrator: CompositionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.compose(payload)
