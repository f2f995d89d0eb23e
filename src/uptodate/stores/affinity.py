"""Affinity store - accumulated (user_id, topic_id) -> score."""

import asyncio
from collections import defaultdict
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from uptodate.db.dialect import supports_upsert, upsert_insert
from uptodate.models.user_topic_score import UserTopicScore


class KeyedLocks:
    """asyncio locks keyed by an arbitrary hashable.

    Owned by the application (``app.state``) and handed to stores explicitly.
    Only serializes writers inside one process.
    """

    def __init__(self) -> None:
        self._locks: dict[tuple, asyncio.Lock] = defaultdict(asyncio.Lock)

    def get(self, key: tuple) -> asyncio.Lock:
        return self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class AffinityStore:
    def __init__(self, db: AsyncSession, locks: KeyedLocks | None = None) -> None:
        self.db = db
        self.locks = locks if locks is not None else KeyedLocks()

    async def get(self, user_id: str, topic_id: str) -> float:
        """Return the stored score, 0.0 when the user never touched the topic."""
        stmt = (
            select(UserTopicScore.score)
            .where(UserTopicScore.user_id == user_id)
            .where(UserTopicScore.topic_id == topic_id)
        )
        result = await self.db.execute(stmt)
        score = result.scalar_one_or_none()
        return float(score) if score is not None else 0.0

    async def get_many(self, user_id: str, topic_ids: list[str]) -> dict[str, float]:
        """Return scores for the given topics; topics without a row are omitted."""
        if not topic_ids:
            return {}
        stmt = (
            select(UserTopicScore.topic_id, UserTopicScore.score)
            .where(UserTopicScore.user_id == user_id)
            .where(UserTopicScore.topic_id.in_(set(topic_ids)))
        )
        result = await self.db.execute(stmt)
        return {row.topic_id: float(row.score) for row in result.all()}

    async def set(
        self,
        user_id: str,
        topic_id: str,
        score: float,
        updated_at: datetime | None = None,
    ) -> None:
        """Overwrite the score for (user_id, topic_id)."""
        updated_at = updated_at or datetime.now(timezone.utc)
        stmt = (
            select(UserTopicScore)
            .where(UserTopicScore.user_id == user_id)
            .where(UserTopicScore.topic_id == topic_id)
        )
        result = await self.db.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            self.db.add(
                UserTopicScore(
                    user_id=user_id,
                    topic_id=topic_id,
                    score=score,
                    updated_at=updated_at,
                )
            )
        else:
            row.score = score
            row.updated_at = updated_at
        await self.db.flush()

    async def add(
        self,
        user_id: str,
        topic_id: str,
        delta: float,
        updated_at: datetime | None = None,
    ) -> None:
        """Add ``delta`` to the stored score without losing concurrent updates.

        Uses a single ``INSERT ... ON CONFLICT DO UPDATE SET score = score +
        excluded.score`` where the dialect supports it. Elsewhere the
        read-modify-write is serialized per (user_id, topic_id).
        """
        updated_at = updated_at or datetime.now(timezone.utc)

        if supports_upsert(self.db):
            stmt = upsert_insert(self.db, UserTopicScore).values(
                user_id=user_id,
                topic_id=topic_id,
                score=delta,
                updated_at=updated_at,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", "topic_id"],
                set_={
                    "score": UserTopicScore.score + stmt.excluded.score,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            await self.db.execute(stmt)
            return

        async with self.locks.get((user_id, topic_id)):
            current = await self.get(user_id, topic_id)
            await self.set(user_id, topic_id, current + delta, updated_at)
