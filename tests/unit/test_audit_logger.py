import pytest

from studio_crm.datastore import InMemoryDataStore
from studio_crm.datastore.base import AUDIT_LOGS
from studio_crm.infrastructure.audit import AuditLogger


@pytest.mark.asyncio
async def test_audit_event_is_stored_with_wire_names():
    store = InMemoryDataStore()

    stored = await AuditLogger(store).log(
        operator="王小明",
        action="connection_bound",
        resource_type="line_connection",
        resource_id="U123",
        request_id="req-1",
        metadata={"contact_id": "cust-1"},
    )

    assert stored is True
    [record] = await store.list_records(AUDIT_LOGS)
    assert record["id"].startswith("audit-")
    assert record["resourceId"] == "U123"
    assert record["requestId"] == "req-1"
    assert record["metadata"] == {"contact_id": "cust-1"}


@pytest.mark.asyncio
async def test_failed_write_returns_false_instead_of_raising():
    store = InMemoryDataStore()
    store.failing_collections[AUDIT_LOGS] = "store offline"

    assert await AuditLogger(store).log(operator="op", action="contact_deleted") is False
