"""
Datastore boundary: the DataStore capability and its implementations.
"""

from studio_crm.datastore.base import (
    DataStore,
    NotFoundError,
    PersistenceError,
    Record,
)
from studio_crm.datastore.memory import InMemoryDataStore
from studio_crm.datastore.supabase import SupabaseDataStore

__all__ = [
    "DataStore",
    "InMemoryDataStore",
    "NotFoundError",
    "PersistenceError",
    "Record",
    "SupabaseDataStore",
]
