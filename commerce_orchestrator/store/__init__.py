from commerce_orchestrator.store.base import DataStore, DuplicateOrderNumber, StoreError
from commerce_orchestrator.store.memory import MemoryStore
from commerce_orchestrator.store.supabase import SupabaseStore

__all__ = [
    "DataStore",
    "StoreError",
    "DuplicateOrderNumber",
    "MemoryStore",
    "SupabaseStore",
]
