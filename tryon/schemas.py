# tryon/schemas.py
from typing import List, Optional, Union

from pydantic import BaseModel, Field

# Upstream sends either an exact amount or a pre-formatted display string
# (e.g. a price range); both are kept as received.
Price = Union[int, float, str]


class SearchResultItem(BaseModel):
    externalId: Optional[str] = None
    title: Optional[str] = None
    imageUrl: Optional[str] = None
    price: Optional[Price] = None
    rating: Optional[float] = None
    productUrl: Optional[str] = None


class SearchResponse(BaseModel):
    items: List[SearchResultItem]
    rawCount: int = Field(..., description="Number of upstream candidates before truncation.")


class HealthResponse(BaseModel):
    ok: bool = True
    api_key_present: bool
    genai_key_present: bool


class TryOnPayload(BaseModel):
    userImage: Optional[str] = Field(None, description="Subject photo, base64 or data URI.")
    clothImage: Optional[str] = Field(None, description="Garment reference photo, base64 or data URI.")


class TryOnResponse(BaseModel):
    image: str = Field(..., description="The generated try-on image as a PNG data URI.")
