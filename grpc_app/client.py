"""Async client for `items.v1.ItemService`."""
from __future__ import annotations

from typing import List, Optional, Tuple

import grpc

from application.dto import ItemDTO, ItemPageDTO
from grpc_app.mappers.item import item_proto_to_dto
from grpc_app.generated.items.v1 import item_service_pb2, item_service_pb2_grpc


class ItemServiceClient:
    """Thin typed wrapper over the stub.

    Sends `authorization: Bearer <token>` when a token is given. Failed calls
    raise `grpc.aio.AioRpcError` carrying the server's status and trailing
    metadata (`error-code`, ...).

        async with ItemServiceClient.of("localhost:50051", token=token) as client:
            item = await client.create_item("Widget")
    """

    def __init__(self, channel: grpc.aio.Channel, token: Optional[str] = None, timeout: Optional[float] = None):
        self._channel = channel
        self._stub = item_service_pb2_grpc.ItemServiceStub(channel)
        self._token = token
        self._timeout = timeout

    @classmethod
    def of(cls, target: str, token: Optional[str] = None, timeout: Optional[float] = None) -> "ItemServiceClient":
        return cls(grpc.aio.insecure_channel(target), token=token, timeout=timeout)

    async def __aenter__(self) -> "ItemServiceClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._channel.close()

    def _metadata(self) -> Optional[List[Tuple[str, str]]]:
        if not self._token:
            return None
        return [("authorization", f"Bearer {self._token}")]

    async def _call(self, rpc: str, request):
        return await getattr(self._stub, rpc)(request, metadata=self._metadata(), timeout=self._timeout)

    async def create_item(self, name: str) -> ItemDTO:
        reply = await self._call("CreateItem", item_service_pb2.ItemDto(name=name))
        return item_proto_to_dto(reply.item)

    async def get_item(self, item_id: str) -> ItemDTO:
        reply = await self._call("GetItem", item_service_pb2.GetItemRequest(id=item_id))
        return item_proto_to_dto(reply.item)

    async def get_items(self, start_page: int = 1, page_size: int = 10) -> ItemPageDTO:
        reply = await self._call(
            "GetItems", item_service_pb2.GetItemsRequest(start_page=start_page, page_size=page_size)
        )
        return ItemPageDTO(
            items=[item_proto_to_dto(item) for item in reply.items],
            total_elements=reply.total_elements,
            total_pages=reply.total_pages,
        )

    async def update_item(self, item_id: str, name: str) -> ItemDTO:
        reply = await self._call("UpdateItem", item_service_pb2.ItemDto(id=item_id, name=name))
        return item_proto_to_dto(reply.item)

    async def delete_item(self, item_id: str) -> bool:
        reply = await self._call("DeleteItem", item_service_pb2.DeleteItemRequest(id=item_id))
        return reply.deleted
