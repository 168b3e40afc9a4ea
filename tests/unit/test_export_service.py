import csv
import io
from zoneinfo import ZoneInfo

from studio_crm.features.crm.domain.models import Contact
from studio_crm.features.projects.domain.models import DesignProject
from studio_crm.services.export_service import (
    CONTACT_COLUMNS,
    PROJECT_COLUMNS,
    UTF8_BOM,
    export_contacts_csv,
    export_projects_csv,
)

TAIPEI = ZoneInfo("Asia/Taipei")


def _rows(text: str) -> list[list[str]]:
    assert text.startswith(UTF8_BOM)
    return list(csv.reader(io.StringIO(text[len(UTF8_BOM):])))


def test_project_export_quotes_commas_and_newlines():
    project = DesignProject(
        id="p1",
        project_name="信義區, 陳宅",
        client_name="陳先生",
        latest_progress_notes="【泥作】完成浴室\n明天進場木作",
        last_updated_timestamp=1767200000000,
    )

    text = export_projects_csv([project], TAIPEI)
    rows = _rows(text)

    assert rows[0] == PROJECT_COLUMNS
    assert rows[1][0] == "信義區, 陳宅"
    assert rows[1][7] == "【泥作】完成浴室\n明天進場木作"
    assert rows[1][8] == "2026-01-01 00:53"
    assert '"信義區, 陳宅"' in text


def test_contact_export_joins_tags_and_marks_link():
    contacts = [
        Contact(
            id="c1",
            name="林小姐",
            external_id="U" + "0" * 32,
            external_display_name="Lin",
            tags=["VIP", "轉介"],
            created_at=None,
        ),
        Contact(id="c2", name="王先生", external_id="0912345678"),
    ]

    rows = _rows(export_contacts_csv(contacts, TAIPEI))

    assert rows[0] == CONTACT_COLUMNS
    assert rows[1] == ["林小姐", "", "", "VIP、轉介", "是", "Lin", ""]
    assert rows[2][4] == "否"


def test_empty_export_is_header_only():
    assert _rows(export_projects_csv([], TAIPEI)) == [PROJECT_COLUMNS]
