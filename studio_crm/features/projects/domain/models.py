"""
Domain models for design projects (site tracking).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ProjectStage(str, Enum):
    CONTACT = "接洽中"
    DESIGN = "設計中"
    CONSTRUCTION = "施工中"
    ACCEPTANCE = "待驗收"
    COMPLETED = "已完工"
    CLOSED_DESIGN = "已結案(純設計)"
    CLOSED_REJECTED = "已結案(未成案)"


CLOSED_STAGES = (ProjectStage.CLOSED_DESIGN, ProjectStage.CLOSED_REJECTED)

CONSTRUCTION_PHASES = [
    "保護工程",
    "拆除工程",
    "泥作工程",
    "水電工程",
    "空調/管線",
    "木作工程",
    "油漆工程",
    "系統櫃安裝",
    "石材/磁磚",
    "燈具/玻璃",
    "地板工程",
    "細部清潔",
    "家具軟裝",
    "驗收缺失改善",
    "完工交付",
    "其他事項",
]


@dataclass(slots=True)
class ScheduleItem:
    phase: str
    start_date: str
    end_date: str

    @classmethod
    def from_record(cls, record: dict) -> "ScheduleItem":
        return cls(
            phase=record.get("phase") or "",
            start_date=record.get("startDate") or "",
            end_date=record.get("endDate") or "",
        )

    def to_record(self) -> dict:
        return {"phase": self.phase, "startDate": self.start_date, "endDate": self.end_date}


@dataclass(slots=True)
class HistoryLog:
    id: str
    timestamp: int
    user_id: str
    user_name: str
    action: str
    details: str
    field: str | None = None
    old_value: Any = None
    new_value: Any = None

    @classmethod
    def from_record(cls, record: dict) -> "HistoryLog":
        return cls(
            id=record.get("id") or "",
            timestamp=int(record.get("timestamp") or 0),
            user_id=record.get("userId") or "",
            user_name=record.get("userName") or "",
            action=record.get("action") or "",
            details=record.get("details") or "",
            field=record.get("field"),
            old_value=record.get("oldValue"),
            new_value=record.get("newValue"),
        )

    def to_record(self) -> dict:
        record = {
            "id": self.id,
            "timestamp": self.timestamp,
            "userId": self.user_id,
            "userName": self.user_name,
            "action": self.action,
            "details": self.details,
        }
        if self.field is not None:
            record.update({"field": self.field, "oldValue": self.old_value, "newValue": self.new_value})
        return record


@dataclass(slots=True)
class DesignProject:
    id: str
    project_name: str
    client_name: str = ""
    assigned_employee: str = ""
    address: str = ""
    contact_phone: str = ""
    current_stage: str = ProjectStage.CONTACT.value
    estimated_completion_date: str = ""
    latest_progress_notes: str = ""
    client_requests: str = ""
    internal_notes: str = ""
    last_updated_timestamp: int = 0
    created_at: int = 0
    image_url: str = ""
    history: list[HistoryLog] = field(default_factory=list)
    schedule: list[ScheduleItem] = field(default_factory=list)

    @property
    def activity_timestamp(self) -> int:
        """Creation time, falling back to the last update for older records."""
        return self.created_at or self.last_updated_timestamp

    @classmethod
    def from_record(cls, record: dict) -> "DesignProject":
        return cls(
            id=record["id"],
            project_name=record.get("projectName") or "",
            client_name=record.get("clientName") or "",
            assigned_employee=record.get("assignedEmployee") or "",
            address=record.get("address") or "",
            contact_phone=record.get("contactPhone") or "",
            current_stage=record.get("currentStage") or ProjectStage.CONTACT.value,
            estimated_completion_date=record.get("estimatedCompletionDate") or "",
            latest_progress_notes=record.get("latestProgressNotes") or "",
            client_requests=record.get("clientRequests") or "",
            internal_notes=record.get("internalNotes") or "",
            last_updated_timestamp=int(record.get("lastUpdatedTimestamp") or 0),
            created_at=int(record.get("createdAt") or 0),
            image_url=record.get("imageUrl") or "",
            history=[HistoryLog.from_record(h) for h in record.get("history") or []],
            schedule=[ScheduleItem.from_record(s) for s in record.get("schedule") or []],
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "projectName": self.project_name,
            "clientName": self.client_name,
            "assignedEmployee": self.assigned_employee,
            "address": self.address,
            "contactPhone": self.contact_phone,
            "currentStage": self.current_stage,
            "estimatedCompletionDate": self.estimated_completion_date,
            "latestProgressNotes": self.latest_progress_notes,
            "clientRequests": self.client_requests,
            "internalNotes": self.internal_notes,
            "lastUpdatedTimestamp": self.last_updated_timestamp,
            "createdAt": self.created_at,
            "imageUrl": self.image_url,
            "history": [h.to_record() for h in self.history],
            "schedule": [s.to_record() for s in self.schedule],
        }
