"""
HTTP tests for reservations and the notification webhook.
"""

import pytest

from studio_crm.datastore import InMemoryDataStore
from studio_crm.datastore.base import CUSTOMERS, NOTIFICATION_LOGS

LINKED = "U" + "c" * 32


@pytest.fixture
def store(make_contact):
    return InMemoryDataStore(
        seed={
            CUSTOMERS: [
                make_contact("cust-linked", name="林小姐", external_id=LINKED),
                make_contact("cust-plain", name="陳先生"),
            ]
        }
    )


def _create(client, contact_id: str, **overrides):
    body = {"contact_id": contact_id, "date_time": "2024-05-20T14:30", "type": "丈量"}
    body.update(overrides)
    return client.post("/reservations", json=body)


def test_linked_contact_reservation_notifies_customer(build_client, webhook_calls):
    with build_client() as client:
        response = _create(client, "cust-linked")
        listed = client.get("/reservations", params={"day": "2024-05-20"}).json()

    assert response.status_code == 201
    body = response.json()
    assert body["notification"] == {
        "attempted": True,
        "delivered": True,
        "status": "sent",
        "error": None,
    }
    assert body["reservation"]["notified"] is True
    assert len(webhook_calls) == 1
    assert webhook_calls[0].url.params["lineUserId"] == LINKED
    assert webhook_calls[0].url.params["isUpdate"] == "false"
    assert listed["total_count"] == 1


@pytest.mark.asyncio
async def test_unlinked_contact_reservation_is_logged_as_skipped(build_client, webhook_calls, store):
    with build_client() as client:
        response = _create(client, "cust-plain")

    assert response.status_code == 201
    assert response.json()["notification"]["status"] == "skipped"
    assert webhook_calls == []
    [log] = await store.list_records(NOTIFICATION_LOGS)
    assert log["operator"] == "王小明"


def test_invalid_reservation_type_is_rejected(build_client):
    with build_client() as client:
        response = _create(client, "cust-plain", type="午餐")

    assert response.status_code == 400


def test_unknown_contact_is_not_found(build_client):
    with build_client() as client:
        response = _create(client, "nobody")

    assert response.status_code == 404


def test_reschedule_sends_update_notification(build_client, webhook_calls):
    with build_client() as client:
        created = _create(client, "cust-linked").json()
        reservation_id = created["reservation"]["id"]
        updated = client.put(
            f"/reservations/{reservation_id}",
            json={"date_time": "2024-05-22T10:00", "type": "其他", "custom_type_label": "複丈"},
        )

    assert updated.status_code == 200
    assert updated.json()["reservation"]["service_name"] == "複丈"
    assert webhook_calls[-1].url.params["isUpdate"] == "true"
    assert webhook_calls[-1].url.params["appointmentTime"] == "2024/05/22 10:00"


def test_cancel_reservation(build_client):
    with build_client() as client:
        reservation_id = _create(client, "cust-plain").json()["reservation"]["id"]
        cancelled = client.post(f"/reservations/{reservation_id}/cancel")
        listed = client.get("/reservations").json()
        missing = client.post("/reservations/missing/cancel")

    assert cancelled.status_code == 204
    assert listed["reservations"][0]["status"] == "cancelled"
    assert missing.status_code == 404


def test_test_notification_endpoint(build_client, webhook_calls):
    with build_client() as client:
        response = client.post("/reservations/test-notification")

    assert response.json() == {"delivered": True, "webhook_configured": True}
    assert webhook_calls[0].url.params["lineUserId"] == "SYSTEM_TEST"
