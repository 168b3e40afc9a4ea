"""
HTTP tests for design project analytics, progress notes and AI reports.
"""

import pytest

from studio_crm.datastore import InMemoryDataStore
from studio_crm.datastore.base import PROJECTS
from studio_crm.features.crm.domain.models import now_ms
from studio_crm.services.openai_service import ANALYSIS_ERROR_TEXT, REPORT_ERROR_TEXT


def _project_record(pid: str, stage: str, address: str, designer: str, **extra) -> dict:
    record = {
        "id": pid,
        "projectName": f"案子 {pid}",
        "clientName": "陳先生",
        "assignedEmployee": designer,
        "address": address,
        "currentStage": stage,
        "latestProgressNotes": "",
        "clientRequests": "希望多一間儲藏室",
        "internalNotes": "報價壓低 5%",
        "lastUpdatedTimestamp": now_ms(),
        "createdAt": now_ms(),
        "history": [],
        "schedule": [],
    }
    record.update(extra)
    return record


@pytest.fixture
def store():
    return InMemoryDataStore(
        seed={
            PROJECTS: [
                _project_record(
                    "p1",
                    "施工中",
                    "台北市大安區忠孝東路",
                    "王小明",
                    schedule=[{"phase": "木作工程", "startDate": "2024-06-01", "endDate": "2024-06-05"}],
                ),
                _project_record("p2", "設計中", "台北市大安區信義路", "李大華"),
                _project_record("p3", "已結案(未成案)", "新北市板橋區", "王小明"),
                _project_record("old", "已完工", "台中市西屯區", "李大華", createdAt=1000),
            ]
        }
    )


def test_analytics_for_one_month(build_client):
    with build_client() as client:
        response = client.get("/projects/analytics", params={"range": "1M"})

    assert response.status_code == 200
    data = response.json()
    assert data["project_count"] == 3
    assert data["locations"][0] == {"name": "台北市 大安區", "count": 2}
    assert data["trades"] == [{"subject": "木作", "days": 5}]
    assert {b["name"]: b["count"] for b in data["funnel"]} == {
        "施工中": 1,
        "設計中": 1,
        "未成案/結案": 1,
    }
    assert data["workload"][0]["name"] in ("王小明", "李大華")


def test_analytics_all_range_includes_old_projects(build_client):
    with build_client() as client:
        data = client.get("/projects/analytics").json()

    assert data["range"] == "ALL"
    assert data["project_count"] == 4


def test_projects_csv_export(build_client):
    with build_client() as client:
        response = client.get("/projects/export.csv")

    assert response.status_code == 200
    lines = response.content.decode("utf-8").splitlines()
    assert lines[0].startswith("\ufeff案名")
    assert len(lines) == 5


def test_progress_note_updates_latest_notes_and_history(build_client):
    with build_client() as client:
        response = client.post(
            "/projects/p1/progress", json={"category": "木作", "description": "天花板封板完成"}
        )
        again = client.post(
            "/projects/p1/progress", json={"category": "油漆", "description": "批土第一道"}
        )

    assert response.status_code == 200
    assert response.json()["latest_progress_notes"] == "【木作】天花板封板完成"
    assert again.json()["latest_progress_notes"] == "【油漆】批土第一道"
    assert again.json()["history_count"] == 2


def test_progress_note_on_missing_project_is_not_found(build_client):
    with build_client() as client:
        response = client.post(
            "/projects/missing/progress", json={"category": "木作", "description": "x"}
        )

    assert response.status_code == 404


def test_report_without_api_key_returns_fallback_text(build_client):
    with build_client() as client:
        response = client.post("/projects/p1/report")

    assert response.status_code == 200
    assert response.json() == {"project_id": "p1", "report": REPORT_ERROR_TEXT}


def test_report_uses_ai_client_without_internal_notes(build_client, fake_ai_client):
    ai_client = fake_ai_client("本週木作進度順利。")
    with build_client(ai_client=ai_client) as client:
        response = client.post("/projects/p1/report")

    assert response.json()["report"] == "本週木作進度順利。"
    messages = ai_client.chat.completions.create.await_args.kwargs["messages"]
    assert "希望多一間儲藏室" in messages[1]["content"]
    assert "報價壓低" not in messages[1]["content"]


def test_design_issue_analysis(build_client, fake_ai_client):
    ai_client = fake_ai_client('{"analysis": "樑下高度不足", "suggestions": ["降板", "改走明管"]}')
    with build_client(ai_client=ai_client) as client:
        response = client.post("/projects/p2/analysis", json={"issue": "冷氣管線過不去"})

    assert response.status_code == 200
    assert response.json() == {
        "project_id": "p2",
        "analysis": "樑下高度不足",
        "suggestions": ["降板", "改走明管"],
    }


def test_design_issue_analysis_falls_back_on_bad_output(build_client, fake_ai_client):
    with build_client(ai_client=fake_ai_client("not json")) as client:
        response = client.post("/projects/p2/analysis", json={"issue": "冷氣管線過不去"})

    assert response.json()["analysis"] == ANALYSIS_ERROR_TEXT
    assert len(response.json()["suggestions"]) == 3
