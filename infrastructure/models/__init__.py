"""Infrastructure models package exports."""
from .base import Base, metadata
from .item import ItemModel

__all__ = [
    "Base",
    "metadata",
    "ItemModel",
]
