from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from google.protobuf import timestamp_pb2

from application.dto import ItemDTO, ItemPageDTO, ItemRequestDTO, PageQueryDTO
from grpc_app.generated.items.v1 import item_service_pb2


def _to_timestamp(dt: Optional[datetime]) -> Optional[timestamp_pb2.Timestamp]:
    if dt is None:
        return None
    ts = timestamp_pb2.Timestamp()
    # Timestamp treats naive values as UTC
    ts.FromDatetime(dt)
    return ts


def _from_timestamp(msg, field: str) -> Optional[datetime]:
    if not msg.HasField(field):
        return None
    return getattr(msg, field).ToDatetime(tzinfo=timezone.utc)


def item_dto_to_proto(dto: ItemDTO):
    msg = item_service_pb2.ItemDto(id=dto.id, name=dto.name)
    created = _to_timestamp(dto.created_at)
    if created is not None:
        msg.created_at.CopyFrom(created)
    updated = _to_timestamp(dto.updated_at)
    if updated is not None:
        msg.updated_at.CopyFrom(updated)
    return msg


def item_proto_to_dto(msg) -> ItemDTO:
    return ItemDTO(
        id=msg.id,
        name=msg.name,
        created_at=_from_timestamp(msg, "created_at"),
        updated_at=_from_timestamp(msg, "updated_at"),
    )


def item_request_from_proto(msg) -> ItemRequestDTO:
    # proto3 strings default to ""; an empty id means "not supplied"
    return ItemRequestDTO(id=msg.id or None, name=msg.name)


def page_query_from_proto(msg) -> PageQueryDTO:
    return PageQueryDTO(start_page=msg.start_page, page_size=msg.page_size)


def item_page_to_proto(page: ItemPageDTO):
    return item_service_pb2.GetItemsResponse(
        items=[item_dto_to_proto(item) for item in page.items],
        total_elements=page.total_elements,
        total_pages=page.total_pages,
    )
