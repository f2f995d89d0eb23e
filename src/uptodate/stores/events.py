"""Event store - append-only user interaction log."""

from collections import Counter
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from uptodate.models.user_event import UserEvent
from uptodate.services.geobucket import GLOBAL_BUCKET


class EventStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def append(self, events: list[UserEvent]) -> int:
        """Persist events verbatim. Duplicates are kept."""
        if not events:
            return 0
        self.db.add_all(events)
        await self.db.flush()
        return len(events)

    async def bucket_counts_since(self, since: datetime, limit: int) -> Counter:
        """Count events per bucket among the newest ``limit`` events after ``since``."""
        stmt = (
            select(UserEvent.bucket_id)
            .where(UserEvent.created_at >= since)
            .order_by(UserEvent.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return Counter(bucket_id or GLOBAL_BUCKET for bucket_id in result.scalars().all())
