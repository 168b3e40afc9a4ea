import pytest

from studio_crm.features.crm.domain.models import (
    Contact,
    DataQualityError,
    InboundConnection,
    Reservation,
    is_linked_id,
    parse_timestamp_ms,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        (1767200000000, 1767200000000),
        (1767200000000.9, 1767200000000),
        ("1767200000000", 1767200000000),
        ("2026-01-01T00:00:00Z", 1767225600000),
        ("2026-01-01T08:00:00+08:00", 1767225600000),
        ({"seconds": 1767225600, "nanoseconds": 500_000_000}, 1767225600500),
        ({"_seconds": 1767225600, "_nanoseconds": 0}, 1767225600000),
    ],
)
def test_parse_timestamp_ms_accepts_stored_shapes(value, expected):
    assert parse_timestamp_ms(value) == expected


@pytest.mark.parametrize("value", [None, True, "yesterday", {"seconds": "x"}, float("nan"), []])
def test_parse_timestamp_ms_rejects_garbage(value):
    with pytest.raises(DataQualityError):
        parse_timestamp_ms(value)


def test_connection_reads_legacy_aliases():
    connection = InboundConnection.from_record(
        {
            "id": "U123",
            "userId": "U123",
            "displayName": "小美",
            "pictureUrl": "https://img.example.com/a.png",
            "isBound": "yes",
            "timestamp": "not-a-time",
        }
    )

    assert connection.display_name == "小美"
    assert connection.avatar_url == "https://img.example.com/a.png"
    # Only a real boolean counts as bound
    assert connection.is_bound is False
    assert connection.timestamp is None


def test_connection_identity_defaults_to_document_id():
    assert InboundConnection.from_record({"id": "U999"}).external_id == "U999"


def test_contact_reads_legacy_identity_field():
    contact = Contact.from_record({"id": "c1", "name": "陳先生", "lineUserId": "U" + "a" * 32})

    assert contact.is_linked is True
    assert contact.to_record()["UserId"] == "U" + "a" * 32


def test_records_without_id_are_data_quality_errors():
    with pytest.raises(DataQualityError):
        Contact.from_record({"name": "no id"})
    with pytest.raises(DataQualityError):
        Reservation.from_record({"id": "r1"})


def test_linked_id_requires_prefix_and_length():
    assert is_linked_id("U" + "0" * 32) is True
    assert is_linked_id("U123") is False
    assert is_linked_id("0912345678") is False
    assert is_linked_id(None) is False


def test_reservation_service_name_for_other_type():
    base = dict(id="r1", contact_id="c1", customer_name="x", date_time="2024-05-20T14:30")

    assert Reservation(type="丈量", **base).service_name == "丈量"
    assert Reservation(type="其他", custom_type_label="現場勘查", **base).service_name == "現場勘查"
    assert Reservation(type="其他", **base).service_name == "其他事項"
