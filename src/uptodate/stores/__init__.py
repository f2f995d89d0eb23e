"""Persistence handles used by the services.

Each store wraps an ``AsyncSession`` and exposes only the keyed reads and
writes its callers need. Stores never commit; transaction boundaries belong
to the caller (request dependency or ingestion pipeline).
"""

from uptodate.stores.affinity import AffinityStore, KeyedLocks
from uptodate.stores.content import ContentItemStore
from uptodate.stores.events import EventStore
from uptodate.stores.runs import RunStore
from uptodate.stores.snapshots import SnapshotStore

__all__ = [
    "AffinityStore",
    "ContentItemStore",
    "EventStore",
    "KeyedLocks",
    "RunStore",
    "SnapshotStore",
]
