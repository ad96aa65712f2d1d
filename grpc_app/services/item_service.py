from __future__ import annotations

import grpc

from application.services.item_service import ItemApplicationService
from grpc_app.interceptors.pipeline import current_call_context
from grpc_app.mappers.item import (
    item_dto_to_proto,
    item_page_to_proto,
    item_request_from_proto,
    page_query_from_proto,
)
from grpc_app.generated.items.v1 import item_service_pb2, item_service_pb2_grpc


class ItemService(item_service_pb2_grpc.ItemServiceServicer):
    """Transport adapter: proto in, application DTO through, proto out."""

    def __init__(self, service: ItemApplicationService) -> None:
        self._svc = service

    async def CreateItem(self, request, context: grpc.aio.ServicerContext):  # type: ignore[override]
        item = await self._svc.create_item(item_request_from_proto(request), current_call_context())
        return item_service_pb2.CreateItemResponse(item=item_dto_to_proto(item))

    async def GetItem(self, request, context: grpc.aio.ServicerContext):  # type: ignore[override]
        item = await self._svc.get_item(request.id, current_call_context())
        return item_service_pb2.GetItemResponse(item=item_dto_to_proto(item))

    async def GetItems(self, request, context: grpc.aio.ServicerContext):  # type: ignore[override]
        page = await self._svc.get_items(page_query_from_proto(request), current_call_context())
        return item_page_to_proto(page)

    async def UpdateItem(self, request, context: grpc.aio.ServicerContext):  # type: ignore[override]
        item = await self._svc.update_item(item_request_from_proto(request), current_call_context())
        return item_service_pb2.UpdateItemResponse(item=item_dto_to_proto(item))

    async def DeleteItem(self, request, context: grpc.aio.ServicerContext):  # type: ignore[override]
        result = await self._svc.delete_item(request.id, current_call_context())
        return item_service_pb2.DeleteItemResponse(deleted=result.deleted)
