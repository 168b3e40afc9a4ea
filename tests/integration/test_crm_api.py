"""
HTTP tests for the pending inbox and contact routes.
"""

import pytest

from studio_crm.datastore import InMemoryDataStore
from studio_crm.datastore.base import AUDIT_LOGS, CUSTOMERS, LINE_CONNECTIONS

EXT_A = "U" + "a" * 32
EXT_B = "U" + "b" * 32


@pytest.fixture
def store(make_connection, make_contact):
    return InMemoryDataStore(
        seed={
            LINE_CONNECTIONS: [
                make_connection(EXT_A, timestamp=2000, display_name="小美"),
                make_connection(EXT_B, timestamp=1000),
            ],
            CUSTOMERS: [
                make_contact("cust-1", name="陳先生", created_at=1000),
                make_contact("cust-2", name="林小姐", phone="0922000111", created_at=2000),
            ],
        }
    )


def test_inbox_lists_pending_connections_newest_first(build_client):
    with build_client() as client:
        response = client.get("/crm/inbox")

    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == 2
    assert [c["id"] for c in data["connections"]] == [EXT_A, EXT_B]
    assert data["connections"][0]["display_name"] == "小美"


def test_bind_removes_connection_from_inbox(build_client, store):
    with build_client() as client:
        response = client.post(f"/crm/inbox/{EXT_A}/bind", json={"contact_id": "cust-1"})
        inbox = client.get("/crm/inbox").json()

    assert response.status_code == 200
    body = response.json()
    assert body["contact"]["external_id"] == EXT_A
    assert body["contact"]["is_linked"] is True
    assert body["connection"]["is_bound"] is True
    assert [c["id"] for c in inbox["connections"]] == [EXT_B]


def test_second_bind_is_a_conflict(build_client):
    with build_client() as client:
        first = client.post(f"/crm/inbox/{EXT_A}/bind", json={"contact_id": "cust-1"})
        second = client.post(f"/crm/inbox/{EXT_A}/bind", json={"contact_id": "cust-2"})

    assert first.status_code == 200
    assert second.status_code == 409


def test_bind_unknown_contact_is_not_found(build_client):
    with build_client() as client:
        response = client.post(f"/crm/inbox/{EXT_A}/bind", json={"contact_id": "nope"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_bind_is_audited_with_request_id(build_client, store):
    with build_client() as client:
        response = client.post(
            f"/crm/inbox/{EXT_A}/bind",
            json={"contact_id": "cust-1"},
            headers={"X-Request-ID": "req-abc"},
        )

    assert response.headers["X-Request-ID"] == "req-abc"
    [entry] = await store.list_records(AUDIT_LOGS)
    assert entry["action"] == "connection_bound"
    assert entry["operator"] == "王小明"
    assert entry["requestId"] == "req-abc"
    assert entry["metadata"]["operator_id"] == "user-123"


def test_quick_create_builds_contact_and_binds(build_client):
    with build_client() as client:
        response = client.post(f"/crm/inbox/{EXT_B}/quick-create")
        again = client.post(f"/crm/inbox/{EXT_B}/quick-create")
        contacts = client.get("/crm/contacts").json()

    assert response.status_code == 201
    assert response.json()["external_id"] == EXT_B
    assert again.status_code == 409
    assert contacts["total_count"] == 3


def test_contacts_search_and_create(build_client):
    with build_client() as client:
        created = client.post(
            "/crm/contacts", json={"name": " 張太太 ", "phone": "0933", "tags": "VIP, 轉介"}
        )
        by_phone = client.get("/crm/contacts", params={"search": "0922"}).json()
        by_name = client.get("/crm/contacts", params={"search": "張"}).json()

    assert created.status_code == 201
    assert created.json()["name"] == "張太太"
    assert created.json()["tags"] == ["VIP", "轉介"]
    assert [c["id"] for c in by_phone["contacts"]] == ["cust-2"]
    assert [c["name"] for c in by_name["contacts"]] == ["張太太"]


def test_create_contact_validates_name(build_client):
    with build_client() as client:
        response = client.post("/crm/contacts", json={"name": ""})

    assert response.status_code == 422


def test_unlink_and_delete_contact(build_client):
    with build_client() as client:
        client.post(f"/crm/inbox/{EXT_A}/bind", json={"contact_id": "cust-1"})
        unlinked = client.post("/crm/contacts/cust-1/unlink")
        deleted = client.delete("/crm/contacts/cust-1")
        missing = client.delete("/crm/contacts/cust-1")

    assert unlinked.status_code == 200
    assert unlinked.json()["previous_external_id"] == EXT_A
    assert unlinked.json()["released_connection_ids"] == []
    assert deleted.status_code == 204
    assert missing.status_code == 404


def test_contacts_csv_export(build_client):
    with build_client() as client:
        response = client.get("/crm/contacts/export.csv")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    text = response.content.decode("utf-8")
    assert text.startswith("\ufeff姓名,電話")
    assert "林小姐" in text


def test_routes_require_operator_token(build_client):
    with build_client(authenticated=False) as client:
        response = client.get("/crm/inbox")

    assert response.status_code in (401, 403)
