"""HTTP request models."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

NodeType = Literal["HTML", "PRODUCT", "COMPARISON"]


class DiscoverRequest(BaseModel):
    url: str = Field(..., min_length=1)
    concurrency_limit: Optional[int] = Field(default=None, ge=1, le=100)

    @field_validator("url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        return v.strip()


class DetectRequest(BaseModel):
    title: str = ""
    html: str = ""


class NodeModel(BaseModel):
    id: str = Field(..., min_length=1)
    type: NodeType
    content: Optional[str] = None
    product_id: Optional[str] = None
    comparison: Optional[Dict[str, Any]] = None

    @field_validator("type", mode="before")
    @classmethod
    def upper_type(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class ProductModel(BaseModel):
    id: str = Field(..., min_length=1)
    title: str
    asin: Optional[str] = None
    brand: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    exact_mention: Optional[str] = None
    paragraph_index: Optional[int] = None


class PlacementRequest(BaseModel):
    nodes: List[NodeModel]
    products: List[ProductModel]
