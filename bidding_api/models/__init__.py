# Import all models so they register on SQLModel.metadata
from .user import User, UserRead
from .product import Product, is_owner
from .bid import Bid

__all__ = [
    "User", "UserRead",
    "Product", "is_owner",
    "Bid",
]
