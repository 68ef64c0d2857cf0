# tryon/search.py
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import httpx

from .config import Settings
from .errors import InvalidQuery, MissingCredential, UpstreamError
from .schemas import SearchResponse, SearchResultItem

logger = logging.getLogger(__name__)

MAX_ITEMS = 10

Rule = Callable[[Mapping[str, Any]], Any]


# ---------------------------------------------------------
# Field extraction rules
# ---------------------------------------------------------
def text(key: str) -> Rule:
    """Non-empty string under `key`, else absent."""
    def rule(record: Mapping[str, Any]) -> Optional[str]:
        value = record.get(key)
        return value if isinstance(value, str) and value else None
    return rule


def number(key: str) -> Rule:
    """Int or float under `key` (bools excluded), else absent."""
    def rule(record: Mapping[str, Any]):
        value = record.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return value
    return rule


# Evaluated left to right, first present value wins
FIELD_RULES: Dict[str, Sequence[Rule]] = {
    "externalId": (text("asin"),),
    "title": (text("name"), text("title")),
    "imageUrl": (text("image"),),
    "price": (number("price"), text("price_string")),
    "rating": (number("stars"),),
    "productUrl": (text("url"),),
}


def extract(record: Any, rules: Sequence[Rule]) -> Any:
    if not isinstance(record, Mapping):
        return None
    for rule in rules:
        value = rule(record)
        if value is not None:
            return value
    return None


def normalize_record(record: Any) -> SearchResultItem:
    return SearchResultItem(**{field: extract(record, rules) for field, rules in FIELD_RULES.items()})


def select_candidates(payload: Any) -> List[Any]:
    """
    Pick the candidate list from an upstream payload:
      - `results` when it is a non-empty list
      - otherwise `ads` when it is a list
      - otherwise nothing
    """
    if not isinstance(payload, Mapping):
        return []
    results = payload.get("results")
    if isinstance(results, list) and results:
        return results
    ads = payload.get("ads")
    if isinstance(ads, list):
        return ads
    return []


def normalize_payload(payload: Any) -> SearchResponse:
    candidates = select_candidates(payload)
    items = [normalize_record(record) for record in candidates[:MAX_ITEMS]]
    return SearchResponse(items=items, rawCount=len(candidates))


# ---------------------------------------------------------
# Search service
# ---------------------------------------------------------
class SearchNormalizer:
    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    async def search(self, query: Optional[str]) -> SearchResponse:
        q = (query or "").strip()
        if not q:
            raise InvalidQuery("query param q is required")
        if not self.settings.scraper_api_key:
            raise MissingCredential("SCRAPERAPI_KEY not configured on server")

        params = {
            "api_key": self.settings.scraper_api_key,
            "query": q,
            "country": self.settings.country,
            "tld": self.settings.tld,
        }
        try:
            resp = await self.client.get(
                self.settings.search_url,
                params=params,
                timeout=self.settings.search_timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Search API timed out for '{q}': {e!r}")
            raise UpstreamError(
                f"Search API timed out after {self.settings.search_timeout:g}s"
            ) from e
        except httpx.RequestError as e:
            logger.warning(f"Search API request failed for '{q}': {e!r}")
            raise UpstreamError(f"Search API request failed: {e}") from e

        if not resp.is_success:
            logger.warning(f"Search API returned {resp.status_code} for '{q}'")
            raise UpstreamError("ScraperAPI error", status=resp.status_code, body=resp.text)

        result = normalize_payload(resp.json())
        logger.info(f"Search '{q}': {len(result.items)} items of {result.rawCount} candidates")
        return result
