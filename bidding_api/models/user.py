from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime
from typing import Optional
from datetime import datetime, timezone
import uuid


class User(SQLModel, table=True):
    """Marketplace account. Rows are written by the identity service; products only reference them."""
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, nullable=False)
    name: str = Field(nullable=False)
    email: str = Field(nullable=False, unique=True, index=True)
    photo: Optional[str] = Field(default=None)
    role: str = Field(default="BUYER", nullable=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), sa_type=DateTime(timezone=True), nullable=False
    )


class UserRead(SQLModel):
    id: str
    name: str
    email: str
    photo: Optional[str] = None
