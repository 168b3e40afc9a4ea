from datetime import date

import httpx
import pytest

from studio_crm.datastore import InMemoryDataStore, PersistenceError
from studio_crm.datastore.base import CUSTOMERS, NOTIFICATION_LOGS, RESERVATIONS
from studio_crm.features.crm.domain.models import Reservation
from studio_crm.features.crm.services.notification_service import (
    NotificationTrigger,
    evaluate,
    format_appointment_time,
)
from studio_crm.features.crm.services.reservation_service import ReservationService

WEBHOOK = "https://hooks.example.com/notify"


def _reservation(external_id: str = "", reservation_type: str = "丈量", label=None) -> Reservation:
    return Reservation(
        id="res-1",
        contact_id="cust-1",
        customer_name="陳先生",
        date_time="2024-05-20T14:30",
        type=reservation_type,
        external_id=external_id,
        custom_type_label=label,
    )


def _failing_transport(calls: list) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise AssertionError("webhook must not be called")

    return httpx.MockTransport(handler)


def test_evaluate_requires_platform_identity():
    assert evaluate("U1234") is True
    assert evaluate("") is False
    assert evaluate(None) is False
    assert evaluate("0912345678") is False


def test_format_appointment_time():
    assert format_appointment_time("2024-05-20T14:30") == "2024/05/20 14:30"
    assert format_appointment_time("not a date") == "not a date"


@pytest.mark.asyncio
async def test_missing_identity_logs_skipped_without_calling_webhook():
    calls = []
    store = InMemoryDataStore()
    trigger = NotificationTrigger(store, WEBHOOK, transport=_failing_transport(calls))

    outcome = await trigger.trigger(_reservation(external_id=""), operator="王小明")

    assert outcome.attempted is False
    assert outcome.delivered is False
    assert calls == []
    logs = await store.list_records(NOTIFICATION_LOGS)
    assert [log["status"] for log in logs] == ["skipped"]
    assert logs[0]["operator"] == "王小明"


@pytest.mark.asyncio
async def test_unconfigured_webhook_logs_skipped(make_external_id):
    calls = []
    store = InMemoryDataStore()
    trigger = NotificationTrigger(store, None, transport=_failing_transport(calls))

    outcome = await trigger.trigger(_reservation(external_id=make_external_id(1)), operator="op")

    assert outcome.attempted is False
    assert calls == []
    assert (await store.list_records(NOTIFICATION_LOGS))[0]["status"] == "skipped"


@pytest.mark.asyncio
async def test_eligible_reservation_posts_query_parameters(make_external_id):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    ext = make_external_id(1)
    store = InMemoryDataStore()
    trigger = NotificationTrigger(
        store, WEBHOOK, source_label="澤物管理系統", transport=httpx.MockTransport(handler)
    )

    outcome = await trigger.trigger(
        _reservation(external_id=ext, reservation_type="其他", label="現場勘查"),
        operator="op",
        is_update=True,
    )

    assert outcome.delivered is True
    assert len(calls) == 1
    params = calls[0].url.params
    assert calls[0].method == "POST"
    assert params["lineUserId"] == ext
    assert params["clientName"] == "陳先生"
    assert params["appointmentTime"] == "2024/05/20 14:30"
    assert params["serviceName"] == "現場勘查"
    assert params["isUpdate"] == "true"
    assert params["source"] == "澤物管理系統"
    assert (await store.list_records(NOTIFICATION_LOGS))[0]["status"] == "sent"


@pytest.mark.asyncio
async def test_webhook_error_marks_log_failed(make_external_id):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    store = InMemoryDataStore()
    trigger = NotificationTrigger(store, WEBHOOK, transport=httpx.MockTransport(handler))

    outcome = await trigger.trigger(_reservation(external_id=make_external_id(1)), operator="op")

    assert outcome.attempted is True
    assert outcome.delivered is False
    assert "500" in outcome.error
    log = (await store.list_records(NOTIFICATION_LOGS))[0]
    assert log["status"] == "failed"
    assert log["error"] == outcome.error


@pytest.mark.asyncio
async def test_test_notification_uses_system_recipient():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    trigger = NotificationTrigger(InMemoryDataStore(), WEBHOOK, transport=httpx.MockTransport(handler))

    assert await trigger.send_test_notification("王小明") is True
    assert calls[0].url.params["lineUserId"] == "SYSTEM_TEST"


@pytest.mark.asyncio
async def test_create_reservation_marks_notified_when_delivered(make_contact, make_external_id):
    ext = make_external_id(2)
    store = InMemoryDataStore(seed={CUSTOMERS: [make_contact("cust-1", external_id=ext)]})
    trigger = NotificationTrigger(
        store, WEBHOOK, transport=httpx.MockTransport(lambda request: httpx.Response(200))
    )
    service = ReservationService(store, trigger)

    result = await service.create_reservation(
        "cust-1", "2024-05-20T14:30", "其他", operator="op", custom_type_label="  "
    )

    assert result.notification.delivered is True
    stored = await store.get_record(RESERVATIONS, result.reservation.id)
    assert stored["immediateNotified"] is True
    assert stored["customTypeLabel"] == "未命名項目"
    assert stored["dateOnly"] == "2024-05-20"


@pytest.mark.asyncio
async def test_create_reservation_for_unlinked_contact_is_skipped(make_contact):
    store = InMemoryDataStore(seed={CUSTOMERS: [make_contact("cust-1")]})
    service = ReservationService(store, NotificationTrigger(store, WEBHOOK))

    result = await service.create_reservation("cust-1", "2024-05-20T14:30", "諮詢", operator="op")

    assert result.notification.attempted is False
    assert result.reservation.notified is False
    assert (await store.list_records(NOTIFICATION_LOGS))[0]["status"] == "skipped"


@pytest.mark.asyncio
async def test_create_reservation_rejects_unknown_type_and_bad_date(make_contact):
    store = InMemoryDataStore(seed={CUSTOMERS: [make_contact("cust-1")]})
    service = ReservationService(store, NotificationTrigger(store, None))

    with pytest.raises(ValueError):
        await service.create_reservation("cust-1", "2024-05-20T14:30", "午餐", operator="op")
    with pytest.raises(ValueError):
        await service.create_reservation("cust-1", "next tuesday", "諮詢", operator="op")
    assert await store.list_records(RESERVATIONS) == []


@pytest.mark.asyncio
async def test_update_and_cancel_reservation(make_contact):
    store = InMemoryDataStore(seed={CUSTOMERS: [make_contact("cust-1")]})
    service = ReservationService(store, NotificationTrigger(store, None))
    created = await service.create_reservation("cust-1", "2024-05-20T14:30", "諮詢", operator="op")

    updated = await service.update_reservation(
        created.reservation.id, "2024-05-21T09:00", "簽約", operator="op", note="帶合約"
    )
    await service.cancel_reservation(created.reservation.id)

    assert updated.reservation.date_only == "2024-05-21"
    stored = await store.get_record(RESERVATIONS, created.reservation.id)
    assert stored["type"] == "簽約"
    assert stored["note"] == "帶合約"
    assert stored["status"] == "cancelled"
    assert [r.id for r in await service.list_reservations(date(2024, 5, 21))] == [created.reservation.id]


@pytest.mark.asyncio
async def test_delivered_notification_survives_failed_flag_write(
    monkeypatch, make_contact, make_external_id
):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    store = InMemoryDataStore(
        seed={CUSTOMERS: [make_contact("cust-1", external_id=make_external_id(3))]}
    )
    service = ReservationService(
        store, NotificationTrigger(store, WEBHOOK, transport=httpx.MockTransport(handler))
    )
    update_fields = store.update_fields

    async def flaky_update(collection, record_id, fields):
        if collection == RESERVATIONS:
            raise PersistenceError("flag write failed", collection=collection)
        await update_fields(collection, record_id, fields)

    monkeypatch.setattr(store, "update_fields", flaky_update)

    result = await service.create_reservation("cust-1", "2024-05-20T14:30", "丈量", operator="op")

    assert result.notification.delivered is True
    assert result.reservation.notified is False
    assert len(calls) == 1
    assert len(await store.list_records(RESERVATIONS)) == 1
