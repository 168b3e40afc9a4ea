from .models import (
    CLOSED_STAGES,
    CONSTRUCTION_PHASES,
    DesignProject,
    HistoryLog,
    ProjectStage,
    ScheduleItem,
)

__all__ = [
    "CLOSED_STAGES",
    "CONSTRUCTION_PHASES",
    "DesignProject",
    "HistoryLog",
    "ProjectStage",
    "ScheduleItem",
]
