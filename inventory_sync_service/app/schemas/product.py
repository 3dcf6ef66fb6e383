from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Availability = Literal["available", "limited", "out_of_stock"]


class ProductBase(BaseModel):
    name: str = Field(
        ..., min_length=1, description="Product name (required, non-empty)"
    )
    description: Optional[str] = None
    category: str = Field(..., min_length=1, description="Catalogue category")
    base_price: float = Field(..., ge=0, description="Price (must be non-negative)")
    currency: str = Field("USD", min_length=3, max_length=3)
    availability: Availability = "available"
    attributes: Optional[Dict[str, Any]] = None
    images: Optional[List[str]] = None

    @field_validator("name", "category")
    @classmethod
    def validate_not_blank(cls, v, info):
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty or whitespace only")
        return v.strip()

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        return v.upper()


class ProductCreate(ProductBase):
    product_id: Optional[str] = Field(
        None, min_length=1, max_length=64, description="Generated when omitted"
    )
    vendor_id: str = Field(..., min_length=1, max_length=64)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    base_price: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    availability: Optional[Availability] = None
    attributes: Optional[Dict[str, Any]] = None
    images: Optional[List[str]] = None


class AvailabilityUpdate(BaseModel):
    availability: Availability


class BulkAvailabilityItem(BaseModel):
    product_id: str = Field(..., min_length=1)
    availability: Availability


class BulkAvailabilityRequest(BaseModel):
    updates: List[BulkAvailabilityItem] = Field(..., min_length=1)


class BulkAvailabilityError(BaseModel):
    product_id: str
    error: str


class BulkAvailabilityResult(BaseModel):
    success: int
    failed: int
    errors: List[BulkAvailabilityError] = []
    event_ids: List[str] = []


class VendorInventoryStats(BaseModel):
    vendor_id: str
    total_products: int
    available: int
    limited: int
    out_of_stock: int
    categories: Dict[str, int]


class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    vendor_id: str
    created_at: datetime
    updated_at: datetime
