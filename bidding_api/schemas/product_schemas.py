from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from decimal import Decimal
from datetime import datetime

from bidding_api.models.user import UserRead


class ProductForm(BaseModel):
    """Fields accepted by the multipart create/update forms."""
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    category: Optional[str] = None
    height: Optional[float] = None
    length: Optional[float] = None
    width: Optional[float] = None
    medium_used: Optional[str] = None
    weight: Optional[float] = None

    def missing_required(self) -> List[str]:
        return [
            name for name in ("title", "description", "price")
            if getattr(self, name) in (None, "")
        ]


class ProductImage(BaseModel):
    file_name: Optional[str] = None
    file_path: str
    file_type: Optional[str] = None
    public_id: str


class ProductResponse(BaseModel):
    id: str
    user_id: str
    user: Optional[UserRead] = None
    title: str
    slug: str
    description: str
    price: Decimal
    category: Optional[str]
    height: Optional[float]
    length: Optional[float]
    width: Optional[float]
    weight: Optional[float]
    medium_used: Optional[str]
    image: Optional[ProductImage]
    is_verified: bool
    commission: Decimal
    is_sold_out: bool
    sold_to: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ProductWithPriceResponse(ProductResponse):
    bidding_price: Decimal


class ProductWithBidsResponse(ProductWithPriceResponse):
    total_bids: int


class ProductCreatedResponse(BaseModel):
    success: bool = True
    data: ProductResponse


class MessageResponse(BaseModel):
    message: str


class ProductVerifyRequest(BaseModel):
    commission: Decimal = Field(ge=0, max_digits=12, decimal_places=2)


class ProductVerifyResponse(BaseModel):
    message: str
    data: ProductResponse


class BulkDeleteRequest(BaseModel):
    product_ids: List[str] = Field(alias="productIds", min_length=1)

    @field_validator("product_ids", mode="before")
    @classmethod
    def wrap_single_id(cls, value):
        if isinstance(value, str):
            return [value]
        return value

    class Config:
        populate_by_name = True


class BulkDeleteResponse(BaseModel):
    message: str
    deleted_count: int
