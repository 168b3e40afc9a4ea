"""
HTTP tests for the attribution report and follower counts.
"""

import pytest

from studio_crm.datastore import InMemoryDataStore
from studio_crm.datastore.base import LINE_CONNECTIONS, LINE_SOURCES

BASELINE_TS = 1767196800000


@pytest.fixture
def store(make_connection):
    a, b, c = ("U" + ch * 32 for ch in "abc")
    return InMemoryDataStore(
        seed={
            LINE_CONNECTIONS: [
                make_connection(a, timestamp=BASELINE_TS + 1000, source="flyer"),
                make_connection(b, timestamp=BASELINE_TS + 2000),
                make_connection(c, timestamp=BASELINE_TS + 3000, is_blocked=True),
            ],
            LINE_SOURCES: [{"id": b, "UserId": b, "source": "ig_ads", "timestamp": 1}],
        }
    )


def test_report_for_all_time(build_client):
    with build_client() as client:
        response = client.get("/attribution/report")

    assert response.status_code == 200
    data = response.json()
    assert data["range"] == "ALL"
    assert data["window_start_ms"] is None
    assert data["current_total"] == 858 + 2 - 1
    assert data["window_total"] == 3
    assert data["window_active"] == 2
    assert data["window_blocked"] == 1
    # Ties keep snapshot order, newest connection first
    assert data["sources"] == [{"tag": "ig_ads", "count": 1}, {"tag": "flyer", "count": 1}]


def test_custom_range_report(build_client):
    with build_client() as client:
        data = client.get(
            "/attribution/report",
            params={"range": "CUSTOM", "start": "2026-01-01", "end": "2026-01-01"},
        ).json()

    assert data["window_total"] == 3
    assert [p["date"] for p in data["daily_series"]] == ["2026-01-01"]


def test_incomplete_custom_range_is_bad_request(build_client):
    with build_client() as client:
        response = client.get("/attribution/report", params={"range": "CUSTOM", "start": "2026-01-01"})

    assert response.status_code == 400


def test_unknown_range_is_rejected(build_client):
    with build_client() as client:
        response = client.get("/attribution/report", params={"range": "FOREVER"})

    assert response.status_code == 422


def test_follower_metrics_round_trip(build_client):
    with build_client() as client:
        first = client.post("/attribution/followers", json={"date": "2024-05-01", "follower_count": 100})
        client.post("/attribution/followers", json={"date": "2024-05-08", "follower_count": 120})
        listed = client.get("/attribution/followers").json()
        deleted = client.delete(f"/attribution/followers/{first.json()['id']}")
        missing = client.delete(f"/attribution/followers/{first.json()['id']}")

    assert first.status_code == 201
    assert first.json()["recorded_by"] == "王小明"
    assert [m["follower_count"] for m in listed["metrics"]] == [100, 120]
    assert listed["growth"]["current"] == 120
    # Both records are older than a week, so the latest one is also the week-ago count
    assert listed["growth"]["week_ago"] == 120
    assert deleted.status_code == 204
    assert missing.status_code == 404


def test_negative_follower_count_is_rejected(build_client):
    with build_client() as client:
        response = client.post("/attribution/followers", json={"date": "2024-05-01", "follower_count": -5})

    assert response.status_code == 422
