"""Run store - ingestion run lifecycle records."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from uptodate.models.ingestion_run import RUN_ERROR, RUN_RUNNING, IngestionRun


class RunStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def open(self, details: dict | None = None) -> IngestionRun:
        run = IngestionRun(
            status=RUN_RUNNING,
            started_at=datetime.now(timezone.utc),
            details=details or {},
        )
        self.db.add(run)
        await self.db.flush()
        return run

    async def expire_stale(self, before: datetime) -> list[str]:
        """Mark runs still ``running`` since before ``before`` as abandoned errors.

        Frees the single active-run slot held by a crashed process.
        """
        result = await self.db.execute(
            select(IngestionRun)
            .where(IngestionRun.status == RUN_RUNNING)
            .where(IngestionRun.started_at < before)
        )
        stale = list(result.scalars().all())
        now = datetime.now(timezone.utc)
        for run in stale:
            run.status = RUN_ERROR
            run.finished_at = now
            run.details = {**(run.details or {}), "error": "abandoned"}
        await self.db.flush()
        return [run.id for run in stale]

    async def close(self, run_id: str, status: str, details: dict) -> IngestionRun:
        """Move a running run to its terminal status. Only the first close sticks."""
        result = await self.db.execute(
            select(IngestionRun).where(IngestionRun.id == run_id)
        )
        run = result.scalar_one()
        if run.status != RUN_RUNNING:
            raise ValueError(f"run {run_id} is already closed with status {run.status!r}")
        run.status = status
        run.finished_at = datetime.now(timezone.utc)
        run.details = details
        await self.db.flush()
        return run

    async def get(self, run_id: str) -> IngestionRun | None:
        result = await self.db.execute(
            select(IngestionRun).where(IngestionRun.id == run_id)
        )
        return result.scalar_one_or_none()

    async def active_since(self, since: datetime) -> IngestionRun | None:
        """Return a still-running run started at or after ``since``."""
        stmt = (
            select(IngestionRun)
            .where(IngestionRun.status == RUN_RUNNING)
            .where(IngestionRun.started_at >= since)
            .order_by(IngestionRun.started_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def recent(self, limit: int = 20) -> list[IngestionRun]:
        stmt = (
            select(IngestionRun)
            .order_by(IngestionRun.started_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
