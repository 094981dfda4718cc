from locale_engine.persistence.manager import PersistenceManager
from locale_engine.persistence.models import PersistedPreference, TierWriteResult
from locale_engine.persistence.tiers import (
    CookieStorageTier,
    InMemoryStorageTier,
    SqlStorageTier,
    StorageTier,
)

__all__ = [
    "CookieStorageTier",
    "InMemoryStorageTier",
    "PersistedPreference",
    "PersistenceManager",
    "SqlStorageTier",
    "StorageTier",
    "TierWriteResult",
]
