"""Snapshot store - (bucket_id, snapshot_date) -> snapshot document."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from uptodate.db.dialect import supports_upsert, upsert_insert
from uptodate.models.topic_snapshot import TopicSnapshot


class SnapshotStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, bucket_id: str, snapshot_date: str) -> dict | None:
        """Return the stored snapshot document, or None."""
        stmt = (
            select(TopicSnapshot.snapshot)
            .where(TopicSnapshot.bucket_id == bucket_id)
            .where(TopicSnapshot.snapshot_date == snapshot_date)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        bucket_id: str,
        snapshot_date: str,
        snapshot: dict,
        run_id: str | None = None,
    ) -> None:
        """Write a snapshot, replacing any existing one for the same key wholesale."""
        now = datetime.now(timezone.utc)

        if supports_upsert(self.db):
            stmt = upsert_insert(self.db, TopicSnapshot).values(
                bucket_id=bucket_id,
                snapshot_date=snapshot_date,
                snapshot=snapshot,
                run_id=run_id,
                generated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["bucket_id", "snapshot_date"],
                set_={
                    "snapshot": stmt.excluded.snapshot,
                    "run_id": stmt.excluded.run_id,
                    "generated_at": stmt.excluded.generated_at,
                },
            )
            await self.db.execute(stmt)
            return

        existing = await self.db.execute(
            select(TopicSnapshot)
            .where(TopicSnapshot.bucket_id == bucket_id)
            .where(TopicSnapshot.snapshot_date == snapshot_date)
            .with_for_update()
        )
        row = existing.scalar_one_or_none()
        if row is None:
            self.db.add(
                TopicSnapshot(
                    bucket_id=bucket_id,
                    snapshot_date=snapshot_date,
                    snapshot=snapshot,
                    run_id=run_id,
                    generated_at=now,
                )
            )
        else:
            row.snapshot = snapshot
            row.run_id = run_id
            row.generated_at = now
        await self.db.flush()
