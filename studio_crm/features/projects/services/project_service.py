"""
Project service: reading design projects and publishing site progress notes.
"""

from studio_crm.datastore.base import PROJECTS, DataStore
from studio_crm.features.crm.domain.models import now_ms
from studio_crm.features.projects.domain.models import DesignProject, HistoryLog
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def format_progress_note(category: str, description: str) -> str:
    return f"【{category}】{description}"


class ProjectService:
    def __init__(self, store: DataStore):
        self._store = store

    async def list_projects(self) -> list[DesignProject]:
        records = await self._store.list_records(PROJECTS, "lastUpdatedTimestamp", descending=True)
        projects = []
        for record in records:
            try:
                projects.append(DesignProject.from_record(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed project", error=str(e))
        return projects

    async def get_project(self, project_id: str) -> DesignProject:
        return DesignProject.from_record(await self._store.get_record(PROJECTS, project_id))

    async def add_progress_note(
        self,
        project_id: str,
        category: str,
        description: str,
        operator: str,
        operator_id: str = "",
    ) -> DesignProject:
        """
        Publish a site log entry.

        The entry becomes the project's latest progress note and is
        prepended to its history, newest first.
        """
        category = category.strip()
        description = description.strip()
        if not category or not description:
            raise ValueError("progress category and description are required")

        project = await self.get_project(project_id)
        timestamp = now_ms()
        note = format_progress_note(category, description)

        entry = HistoryLog(
            id=f"h-{timestamp}",
            timestamp=timestamp,
            user_id=operator_id,
            user_name=operator,
            action=category,
            details=description,
            field="latestProgressNotes",
            old_value=project.latest_progress_notes,
            new_value=note,
        )
        project.history.insert(0, entry)
        project.latest_progress_notes = note
        project.last_updated_timestamp = timestamp

        await self._store.update_fields(
            PROJECTS,
            project_id,
            {
                "latestProgressNotes": note,
                "lastUpdatedTimestamp": timestamp,
                "history": [h.to_record() for h in project.history],
            },
        )
        logger.info("Progress note published", project_id=project_id, category=category)
        return project
