"""
Request and response models for the tool proxy routes served by the bridge.
"""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field


class PriceLookupRequest(BaseModel):
    """Body of POST /api/checaprecios."""
    item: str = Field(..., min_length=1, description="Product to look up")
    location: Optional[str] = Field(None, description="Optional city or area")


class WebhookRequest(BaseModel):
    """Body of the n8n-backed routes (web search, business advice)."""
    message: str = Field(..., min_length=1)
    user: Optional[str] = None


class WebhookResponse(BaseModel):
    success: bool = True
    data: Any = None


class DataAnalyzerRequest(BaseModel):
    """Body of POST /api/dataanalyzer; ``query`` may be text, an object or a list."""
    query: Union[str, dict, list, None] = None


class DataAnalyzerResponse(BaseModel):
    assistant_response: str = ""
    file_paths: Optional[List[str]] = None
