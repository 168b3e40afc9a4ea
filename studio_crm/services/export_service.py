"""
CSV export for projects and contacts.

Output starts with a UTF-8 byte order mark so spreadsheet tools open the
Chinese text with the right encoding.
"""

import csv
import io
from collections.abc import Iterable, Sequence
from datetime import datetime, tzinfo

from studio_crm.features.crm.domain.models import Contact
from studio_crm.features.projects.domain.models import DesignProject

UTF8_BOM = "\ufeff"

PROJECT_COLUMNS = [
    "案名",
    "客戶",
    "負責人",
    "階段",
    "地址",
    "電話",
    "預計完工",
    "最新進度",
    "最後更新",
]

CONTACT_COLUMNS = ["姓名", "電話", "地址", "標籤", "LINE 綁定", "LINE 名稱", "建立時間"]


def _format_ms(timestamp_ms: int | None, tz: tzinfo) -> str:
    if not timestamp_ms:
        return ""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz).strftime("%Y-%m-%d %H:%M")


def _render(header: Sequence[str], rows: Iterable[Sequence[object]]) -> str:
    buffer = io.StringIO()
    buffer.write(UTF8_BOM)
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def export_projects_csv(projects: Sequence[DesignProject], tz: tzinfo) -> str:
    return _render(
        PROJECT_COLUMNS,
        (
            [
                p.project_name,
                p.client_name,
                p.assigned_employee,
                p.current_stage,
                p.address,
                p.contact_phone,
                p.estimated_completion_date,
                p.latest_progress_notes,
                _format_ms(p.last_updated_timestamp, tz),
            ]
            for p in projects
        ),
    )


def export_contacts_csv(contacts: Sequence[Contact], tz: tzinfo) -> str:
    return _render(
        CONTACT_COLUMNS,
        (
            [
                c.name,
                c.phone,
                c.address,
                "、".join(c.tags),
                "是" if c.is_linked else "否",
                c.external_display_name,
                _format_ms(c.created_at, tz),
            ]
            for c in contacts
        ),
    )
