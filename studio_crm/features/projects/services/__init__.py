from .project_service import ProjectService

__all__ = ["ProjectService"]
