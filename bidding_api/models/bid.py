from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime
from datetime import datetime, timezone
from decimal import Decimal
import uuid


class Bid(SQLModel, table=True):
    __tablename__ = "bids"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, nullable=False)
    product_id: str = Field(foreign_key="products.id", ondelete="CASCADE", index=True, nullable=False)
    user_id: str = Field(foreign_key="users.id", index=True, nullable=False)
    price: Decimal = Field(max_digits=12, decimal_places=2)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), sa_type=DateTime(timezone=True), index=True
    )
