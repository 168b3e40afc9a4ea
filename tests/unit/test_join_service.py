import pytest

from studio_crm.datastore import InMemoryDataStore
from studio_crm.datastore.base import LINE_CONNECTIONS, LINE_SOURCES
from studio_crm.features.crm.services.join_service import DEFAULT_SOURCE, JoinService


@pytest.mark.asyncio
async def test_first_visit_creates_pending_connection_and_source(make_external_id):
    ext = make_external_id(1)
    store = InMemoryDataStore()

    result = await JoinService(store).record_join(ext, "小美", "https://img.example.com/a.png", "ig_ads")

    assert result.first_visit is True
    assert result.connection.is_bound is False
    stored = await store.get_record(LINE_CONNECTIONS, ext)
    assert stored["isBound"] is False
    assert stored["source"] == "ig_ads"
    assert (await store.get_record(LINE_SOURCES, ext))["source"] == "ig_ads"


@pytest.mark.asyncio
async def test_missing_source_defaults_to_direct(make_external_id):
    ext = make_external_id(2)
    store = InMemoryDataStore()

    result = await JoinService(store).record_join(ext, "小美", source="   ")

    assert result.connection.source == DEFAULT_SOURCE


@pytest.mark.asyncio
async def test_returning_visitor_keeps_first_touch_and_binding(make_connection, make_external_id):
    ext = make_external_id(3)
    store = InMemoryDataStore(
        seed={LINE_CONNECTIONS: [make_connection(ext, timestamp=1000, is_bound=True, source="flyer")]}
    )

    result = await JoinService(store).record_join(ext, "新名字", source="ig_ads")

    assert result.first_visit is False
    assert result.connection.source == "flyer"
    assert result.connection.timestamp == 1000
    stored = await store.get_record(LINE_CONNECTIONS, ext)
    assert stored["isBound"] is True
    assert stored["lineDisplayName"] == "新名字"
    assert (await store.get_record(LINE_SOURCES, ext))["source"] == "flyer"


@pytest.mark.asyncio
@pytest.mark.parametrize("external_id", ["", "0912345678", "user-123"])
async def test_rejects_non_platform_identity(external_id):
    store = InMemoryDataStore()

    with pytest.raises(ValueError):
        await JoinService(store).record_join(external_id, "x")

    assert await store.list_records(LINE_CONNECTIONS) == []
