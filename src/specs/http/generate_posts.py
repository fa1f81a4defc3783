from pydantic import BaseModel, Field, StrictInt
from typing import List, Optional


class GeneratePostsRequest(BaseModel):
    """Body of POST /api/generate-posts."""

    industry: str = Field(min_length=1)
    tone: str = Field(min_length=1)
    length: StrictInt = Field(ge=1)


class GeneratedItem(BaseModel):
    caption: str
    imageUrl: Optional[str] = None
    alt: str


class GeneratePostsResponse(BaseModel):
    results: List[GeneratedItem] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str
