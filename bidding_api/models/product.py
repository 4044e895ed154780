from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from decimal import Decimal
import uuid


class Product(SQLModel, table=True):
    __tablename__ = "products"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, nullable=False)
    user_id: str = Field(foreign_key="users.id", index=True, nullable=False)
    title: str = Field(nullable=False)
    slug: str = Field(unique=True, index=True, nullable=False)
    description: str = Field(nullable=False)
    price: Decimal = Field(max_digits=12, decimal_places=2)
    category: Optional[str] = Field(default="All")
    height: Optional[float] = None
    length: Optional[float] = None
    width: Optional[float] = None
    weight: Optional[float] = None
    medium_used: Optional[str] = None
    # {file_name, file_path, file_type, public_id}
    image: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    is_verified: bool = Field(default=False)
    commission: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    is_sold_out: bool = Field(default=False, index=True)
    sold_to: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), sa_type=DateTime(timezone=True), index=True
    )
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


def is_owner(product: Product, user_id) -> bool:
    """True when ``user_id`` is the account that listed ``product``."""
    if product.user_id is None or user_id is None:
        return False
    return str(product.user_id) == str(user_id)
