from .join import router as join_router
from .reservations import router as reservations_router
from .router import router

__all__ = ["join_router", "reservations_router", "router"]
