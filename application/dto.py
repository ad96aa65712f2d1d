"""
Data transfer objects - what crosses the boundary between the transport
adapter and the application layer.
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_serializer


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                s = ts.astimezone(timezone.utc).isoformat()
                return s.replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


class ItemRequestDTO(DTOBase):
    """Create / update payload.

    Fields are deliberately unconstrained: shape checks happen in
    `application.validation` so every violation can be reported at once.
    """
    id: Optional[str] = None
    name: Optional[str] = None


class PageQueryDTO(DTOBase):
    start_page: int = 0
    page_size: int = 0


class ItemDTO(DTOBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ItemPageDTO(DTOBase):
    items: List[ItemDTO] = Field(default_factory=list)
    total_elements: int = 0
    total_pages: int = 0


class DeleteResultDTO(DTOBase):
    deleted: bool
