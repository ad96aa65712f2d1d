import uuid
from functools import partial

import pytest

from application.context import CallContext
from application.dto import ItemRequestDTO, PageQueryDTO
from application.services.item_service import ItemApplicationService
from domain.common.exceptions import (
    DataAccessError,
    EntityNotFoundError,
    StorageConflictError,
    StorageError,
    ValidationError,
)
from domain.common.pagination import PageRequest
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


@pytest.fixture
def service(memory_store, metrics) -> ItemApplicationService:
    return ItemApplicationService(memory_store, metrics=metrics)


async def _seed(service, count: int):
    return [await service.create_item(ItemRequestDTO(name=f"Item {i:02d}")) for i in range(count)]


async def test_create_trims_name_and_assigns_id(service, memory_store):
    item = await service.create_item(ItemRequestDTO(name="  Widget  "), CallContext(request_id="r-1"))

    assert item.name == "Widget"
    assert uuid.UUID(item.id)
    assert item.created_at is not None
    assert item.updated_at is None
    assert memory_store.commits == 1


async def test_create_validation_runs_before_storage(service, memory_store):
    with pytest.raises(ValidationError) as ei:
        await service.create_item(ItemRequestDTO(name="", id=str(uuid.uuid4())))

    assert set(ei.value.errors) == {"Name", "Id"}
    assert memory_store.repository.calls == []


async def test_create_storage_failure_is_classified(service, memory_store):
    memory_store.commit_error = StorageError("disk full")

    with pytest.raises(DataAccessError) as ei:
        await service.create_item(ItemRequestDTO(name="Widget"))

    assert ei.value.operation == "Create"
    assert ei.value.message == "Failed to save entity to database."
    assert "disk full" not in ei.value.message


async def test_create_unexpected_failure_is_wrapped(service, memory_store):
    memory_store.repository.fail_with = RuntimeError("boom")

    with pytest.raises(DataAccessError) as ei:
        await service.create_item(ItemRequestDTO(name="Widget"))

    assert ei.value.message == "An unexpected error occurred while creating the entity."
    assert isinstance(ei.value.__cause__, RuntimeError)


async def test_get_items_page_and_totals(service):
    await _seed(service, 15)

    page = await service.get_items(PageQueryDTO(start_page=1, page_size=10))

    assert len(page.items) == 10
    assert page.total_elements == 15
    assert page.total_pages == 2
    assert [i.name for i in page.items] == [f"Item {i:02d}" for i in range(10)]


async def test_get_items_second_page(service):
    await _seed(service, 15)

    page = await service.get_items(PageQueryDTO(start_page=2, page_size=10))

    assert [i.name for i in page.items] == [f"Item {i:02d}" for i in range(10, 15)]


async def test_page_size_is_clamped_to_service_ceiling(service, memory_store):
    await service.get_items(PageQueryDTO(start_page=1, page_size=150))

    assert memory_store.repository.calls[-1] == ("find_page", PageRequest(start_page=1, page_size=100))


async def test_explicit_zero_ceiling_is_not_replaced_by_default(memory_store, metrics):
    service = ItemApplicationService(memory_store, metrics=metrics, max_page_size=0)

    await service.get_items(PageQueryDTO(start_page=1, page_size=50))

    # A zero ceiling still yields the one-row floor, never the configured default of 100
    assert memory_store.repository.calls[-1] == ("find_page", PageRequest(start_page=1, page_size=1))


async def test_page_size_above_validation_ceiling_is_rejected(service, memory_store):
    with pytest.raises(ValidationError):
        await service.get_items(PageQueryDTO(start_page=1, page_size=1001))
    assert memory_store.repository.calls == []


def test_start_page_clamp_matches_page_one():
    assert PageRequest.clamped(0, 10, 100) == PageRequest.clamped(1, 10, 100) == PageRequest(1, 10)
    assert PageRequest.clamped(1, 150, 100) == PageRequest(1, 100)


async def test_get_items_storage_failure(service, memory_store):
    memory_store.repository.fail_with = StorageError("connection reset")

    with pytest.raises(DataAccessError) as ei:
        await service.get_items(PageQueryDTO(start_page=1, page_size=10))

    assert ei.value.operation == "Read"
    assert ei.value.message == "Failed to retrieve entities from database."


async def test_get_item_round_trip(service):
    created = await service.create_item(ItemRequestDTO(name="Widget"))

    fetched = await service.get_item(created.id)

    assert fetched.id == created.id
    assert fetched.name == "Widget"


async def test_get_item_not_found(service):
    missing = uuid.uuid4()

    with pytest.raises(EntityNotFoundError) as ei:
        await service.get_item(str(missing))

    assert ei.value.entity_type == "Item"
    assert ei.value.entity_id == str(missing)
    assert "was not found" in ei.value.message


async def test_update_renames_and_stamps(service, memory_store):
    created = await service.create_item(ItemRequestDTO(name="Widget"))

    updated = await service.update_item(ItemRequestDTO(id=created.id, name="Gadget"))

    assert updated.name == "Gadget"
    assert updated.updated_at is not None
    assert updated.created_at <= updated.updated_at
    assert ("update", uuid.UUID(created.id)) in memory_store.repository.writes


async def test_update_same_name_is_a_no_op(service, memory_store):
    created = await service.create_item(ItemRequestDTO(name="Widget"))
    commits_before = memory_store.commits
    writes_before = list(memory_store.repository.writes)

    result = await service.update_item(ItemRequestDTO(id=created.id, name="  Widget "))

    assert result.name == "Widget"
    assert result.updated_at is None
    assert memory_store.repository.writes == writes_before
    assert memory_store.commits == commits_before


async def test_update_not_found(service, memory_store):
    with pytest.raises(EntityNotFoundError):
        await service.update_item(ItemRequestDTO(id=str(uuid.uuid4()), name="Gadget"))
    assert memory_store.repository.writes == []


async def test_update_conflict_message(service, memory_store):
    created = await service.create_item(ItemRequestDTO(name="Widget"))
    memory_store.commit_error = StorageConflictError("version mismatch")

    with pytest.raises(DataAccessError) as ei:
        await service.update_item(ItemRequestDTO(id=created.id, name="Gadget"))

    assert ei.value.operation == "Update"
    assert ei.value.message == "The entity was modified by another user. Please refresh and try again."


async def test_update_generic_storage_failure(service, memory_store):
    created = await service.create_item(ItemRequestDTO(name="Widget"))
    memory_store.commit_error = StorageError("constraint")

    with pytest.raises(DataAccessError) as ei:
        await service.update_item(ItemRequestDTO(id=created.id, name="Gadget"))

    assert ei.value.message == "Failed to update entity in database."


async def test_delete(service, memory_store):
    created = await service.create_item(ItemRequestDTO(name="Widget"))

    result = await service.delete_item(created.id)

    assert result.deleted is True
    with pytest.raises(EntityNotFoundError):
        await service.get_item(created.id)


async def test_delete_unknown_id_writes_nothing(service, memory_store):
    with pytest.raises(EntityNotFoundError) as ei:
        await service.delete_item(str(uuid.uuid4()))

    assert "Item" in ei.value.message
    assert "was not found" in ei.value.message
    assert memory_store.repository.writes == []
    assert memory_store.commits == 0


async def test_delete_invalid_id(service, memory_store):
    with pytest.raises(ValidationError):
        await service.delete_item("not-a-guid")
    assert memory_store.repository.calls == []


async def test_database_durations_are_recorded(service, metrics):
    await service.create_item(ItemRequestDTO(name="Widget"))

    assert metrics.sample(
        "items_database_operation_duration_seconds_count", {"operation": "create", "success": "true"}
    ) == 1


class RacingUnitOfWork(SQLAlchemyUnitOfWork):
    """Commits a competing rename right after the first lookup of each unit."""

    async def __aenter__(self):
        await super().__aenter__()
        repository = self.item_repository
        find_by_id = repository.find_by_id
        session_factory = self._session_factory

        async def find_then_race(item_id):
            item = await find_by_id(item_id)
            async with SQLAlchemyUnitOfWork(session_factory) as rival:
                other = await rival.item_repository.find_by_id(item_id)
                other.rename("Rival")
                await rival.item_repository.update(other)
                await rival.commit()
            return item

        repository.find_by_id = find_then_race
        return self


class TestAgainstSQLite:
    @pytest.fixture
    def sql_service(self, uow_factory, metrics):
        return ItemApplicationService(uow_factory, metrics=metrics)

    async def test_create_round_trip(self, sql_service):
        created = await sql_service.create_item(ItemRequestDTO(name="Widget"))

        fetched = await sql_service.get_item(created.id)

        assert created.id
        assert fetched.name == "Widget"
        assert fetched.created_at == created.created_at

    async def test_pagination_totals(self, sql_service):
        for i in range(15):
            await sql_service.create_item(ItemRequestDTO(name=f"Item {i:02d}"))

        page = await sql_service.get_items(PageQueryDTO(start_page=1, page_size=10))

        assert len(page.items) == 10
        assert page.total_elements == 15
        assert page.total_pages == 2
        assert page.items[0].name == "Item 00"

    async def test_no_op_update_keeps_updated_at(self, sql_service):
        created = await sql_service.create_item(ItemRequestDTO(name="Widget"))
        renamed = await sql_service.update_item(ItemRequestDTO(id=created.id, name="Gadget"))
        before = await sql_service.get_item(created.id)

        again = await sql_service.update_item(ItemRequestDTO(id=created.id, name="Gadget"))
        after = await sql_service.get_item(created.id)

        assert renamed.updated_at is not None
        assert again.updated_at == before.updated_at
        assert after.updated_at == before.updated_at

    async def test_delete_then_not_found(self, sql_service):
        created = await sql_service.create_item(ItemRequestDTO(name="Widget"))

        assert (await sql_service.delete_item(created.id)).deleted is True
        with pytest.raises(EntityNotFoundError):
            await sql_service.delete_item(created.id)

    async def test_concurrent_update_reports_conflict(self, sql_service, session_factory, metrics):
        created = await sql_service.create_item(ItemRequestDTO(name="Widget"))
        racing = ItemApplicationService(partial(RacingUnitOfWork, session_factory), metrics=metrics)

        with pytest.raises(DataAccessError) as ei:
            await racing.update_item(ItemRequestDTO(id=created.id, name="Gadget"))

        assert ei.value.operation == "Update"
        assert ei.value.message == "The entity was modified by another user. Please refresh and try again."
        assert (await sql_service.get_item(created.id)).name == "Rival"
