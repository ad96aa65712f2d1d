"""
Item application service (application/services) - orchestrates validation,
repository calls and response assembly for each CRUD operation.
"""
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from application.context import CallContext
from application.dto import DeleteResultDTO, ItemDTO, ItemPageDTO, ItemRequestDTO, PageQueryDTO
from application.validation import ItemValidator
from core.config import settings
from core.logging_config import get_logger
from core.metrics import MetricsCollector
from core.tracing import get_tracer
from domain.common.exceptions import (
    DataAccessError,
    DomainError,
    EntityNotFoundError,
    StorageConflictError,
    StorageError,
)
from domain.common.pagination import PageRequest
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.item.entity import Item


logger = get_logger(__name__)
tracer = get_tracer(__name__)

ENTITY_TYPE = "Item"


def to_item_dto(item: Item) -> ItemDTO:
    return ItemDTO(
        id=str(item.id),
        name=item.name,
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


class ItemApplicationService:
    """Item use cases.

    Each operation runs validate -> lookup/domain check -> mutate or query ->
    commit -> map. Classified errors (`DomainError`) propagate unchanged;
    storage failures and anything unexpected leave as `DataAccessError`.
    """

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        validator: Optional[ItemValidator] = None,
        metrics: Optional[MetricsCollector] = None,
        max_page_size: Optional[int] = None,
    ):
        self._uow_factory = uow_factory
        self._validator = validator or ItemValidator()
        self._metrics = metrics
        if max_page_size is None:
            max_page_size = settings.pagination.max_page_size
        self._max_page_size = max_page_size

    def _log(self, ctx: Optional[CallContext], operation: str):
        fields = ctx.log_fields() if ctx else {}
        fields["operation"] = operation
        return logger.bind(entity_type=ENTITY_TYPE, **fields)

    @asynccontextmanager
    async def _db_operation(self, operation: str) -> AsyncIterator[None]:
        started = time.perf_counter()
        success = False
        try:
            yield
            success = True
        finally:
            if self._metrics is not None:
                self._metrics.record_database_operation(operation, time.perf_counter() - started, success)

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)

    async def create_item(self, request: ItemRequestDTO, ctx: Optional[CallContext] = None) -> ItemDTO:
        log = self._log(ctx, "CreateItem")
        started = time.perf_counter()
        with tracer.start_as_current_span("item.create"):
            try:
                self._validator.validate_create(request)
                item = Item(name=request.name.strip())
                async with self._uow_factory() as uow:
                    async with self._db_operation("create"):
                        await uow.item_repository.save(item)
                        await uow.commit()
                log.info("item_created", item_id=str(item.id), duration_ms=self._elapsed_ms(started))
                return to_item_dto(item)
            except DomainError:
                raise
            except StorageError as exc:
                log.error("item_create_storage_failed", error=str(exc), duration_ms=self._elapsed_ms(started))
                raise DataAccessError("Create", "Failed to save entity to database.") from exc
            except Exception as exc:
                log.exception("item_create_failed", duration_ms=self._elapsed_ms(started))
                raise DataAccessError(
                    "Create", "An unexpected error occurred while creating the entity."
                ) from exc

    async def get_items(self, query: PageQueryDTO, ctx: Optional[CallContext] = None) -> ItemPageDTO:
        log = self._log(ctx, "GetItems")
        started = time.perf_counter()
        with tracer.start_as_current_span("item.list") as span:
            try:
                self._validator.validate_pagination(query)
                page_request = PageRequest.clamped(query.start_page, query.page_size, self._max_page_size)
                span.set_attribute("page.start", page_request.start_page)
                span.set_attribute("page.size", page_request.page_size)

                async with self._uow_factory(readonly=True) as uow:
                    async with self._db_operation("read_page"):
                        page = await uow.item_repository.find_page(page_request)

                result = ItemPageDTO(
                    items=[to_item_dto(item) for item in page.items],
                    total_elements=page.total_elements,
                    total_pages=page.total_pages(page_request.page_size),
                )
                log.info(
                    "items_listed",
                    start_page=page_request.start_page,
                    page_size=page_request.page_size,
                    returned=len(result.items),
                    total_elements=result.total_elements,
                    duration_ms=self._elapsed_ms(started),
                )
                return result
            except DomainError:
                raise
            except StorageError as exc:
                log.error("items_list_storage_failed", error=str(exc), duration_ms=self._elapsed_ms(started))
                raise DataAccessError("Read", "Failed to retrieve entities from database.") from exc
            except Exception as exc:
                log.exception("items_list_failed", duration_ms=self._elapsed_ms(started))
                raise DataAccessError(
                    "Read", "An unexpected error occurred while retrieving entities."
                ) from exc

    async def get_item(self, item_id: Optional[str], ctx: Optional[CallContext] = None) -> ItemDTO:
        log = self._log(ctx, "GetItem")
        started = time.perf_counter()
        with tracer.start_as_current_span("item.get") as span:
            try:
                parsed_id = self._validator.validate_and_parse_id(item_id)
                span.set_attribute("item.id", str(parsed_id))
                async with self._uow_factory(readonly=True) as uow:
                    async with self._db_operation("read"):
                        item = await uow.item_repository.find_by_id(parsed_id)
                if item is None:
                    log.warning("item_not_found", item_id=str(parsed_id))
                    raise EntityNotFoundError(ENTITY_TYPE, str(parsed_id))
                log.debug("item_retrieved", item_id=str(parsed_id), duration_ms=self._elapsed_ms(started))
                return to_item_dto(item)
            except DomainError:
                raise
            except StorageError as exc:
                log.error("item_get_storage_failed", error=str(exc), duration_ms=self._elapsed_ms(started))
                raise DataAccessError("Read", "Failed to retrieve entity from database.") from exc
            except Exception as exc:
                log.exception("item_get_failed", duration_ms=self._elapsed_ms(started))
                raise DataAccessError(
                    "Read", "An unexpected error occurred while retrieving the entity."
                ) from exc

    async def update_item(self, request: ItemRequestDTO, ctx: Optional[CallContext] = None) -> ItemDTO:
        log = self._log(ctx, "UpdateItem")
        started = time.perf_counter()
        with tracer.start_as_current_span("item.update") as span:
            try:
                self._validator.validate_update(request)
                parsed_id = self._validator.validate_and_parse_id(request.id)
                span.set_attribute("item.id", str(parsed_id))

                async with self._uow_factory() as uow:
                    async with self._db_operation("update"):
                        item = await uow.item_repository.find_by_id(parsed_id)
                        if item is None:
                            log.warning("item_not_found", item_id=str(parsed_id))
                            raise EntityNotFoundError(ENTITY_TYPE, str(parsed_id))

                        if item.has_name(request.name):
                            span.set_attribute("item.unchanged", True)
                            log.info("item_update_skipped", item_id=str(parsed_id), reason="name unchanged")
                            return to_item_dto(item)

                        old_name = item.rename(request.name)
                        await uow.item_repository.update(item)
                        await uow.commit()

                log.info(
                    "item_updated",
                    item_id=str(parsed_id),
                    old_name=old_name,
                    new_name=item.name,
                    duration_ms=self._elapsed_ms(started),
                )
                return to_item_dto(item)
            except DomainError:
                raise
            except StorageConflictError as exc:
                log.warning("item_update_conflict", error=str(exc), duration_ms=self._elapsed_ms(started))
                raise DataAccessError(
                    "Update", "The entity was modified by another user. Please refresh and try again."
                ) from exc
            except StorageError as exc:
                log.error("item_update_storage_failed", error=str(exc), duration_ms=self._elapsed_ms(started))
                raise DataAccessError("Update", "Failed to update entity in database.") from exc
            except Exception as exc:
                log.exception("item_update_failed", duration_ms=self._elapsed_ms(started))
                raise DataAccessError(
                    "Update", "An unexpected error occurred while updating the entity."
                ) from exc

    async def delete_item(self, item_id: Optional[str], ctx: Optional[CallContext] = None) -> DeleteResultDTO:
        log = self._log(ctx, "DeleteItem")
        started = time.perf_counter()
        with tracer.start_as_current_span("item.delete") as span:
            try:
                parsed_id = self._validator.validate_and_parse_id(item_id)
                span.set_attribute("item.id", str(parsed_id))

                async with self._uow_factory() as uow:
                    async with self._db_operation("delete"):
                        item = await uow.item_repository.find_by_id(parsed_id)
                        if item is None:
                            log.warning("item_not_found", item_id=str(parsed_id))
                            raise EntityNotFoundError(ENTITY_TYPE, str(parsed_id))
                        await uow.item_repository.delete(item)
                        await uow.commit()

                log.info("item_deleted", item_id=str(parsed_id), duration_ms=self._elapsed_ms(started))
                return DeleteResultDTO(deleted=True)
            except DomainError:
                raise
            except StorageError as exc:
                log.error("item_delete_storage_failed", error=str(exc), duration_ms=self._elapsed_ms(started))
                raise DataAccessError("Delete", "Failed to delete entity from database.") from exc
            except Exception as exc:
                log.exception("item_delete_failed", duration_ms=self._elapsed_ms(started))
                raise DataAccessError(
                    "Delete", "An unexpected error occurred while deleting the entity."
                ) from exc
