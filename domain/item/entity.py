"""
Item domain entity.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID


@dataclass
class Item:
    """The managed resource.

    `id` is assigned by the repository when the item is first saved and is
    never reused. `created_at` is stamped once on insert; `updated_at` stays
    empty until the first successful mutation.
    """

    name: str
    id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Optimistic concurrency token maintained by the store
    version: Optional[int] = None

    def has_name(self, name: str) -> bool:
        """True if `name` (trimmed) equals the current name."""
        return self.name == name.strip()

    def rename(self, name: str) -> str:
        """Set a new (trimmed) name and return the previous one."""
        old_name = self.name
        self.name = name.strip()
        return old_name
