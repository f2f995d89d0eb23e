"""Ingestion pipeline - refresh topic snapshots for the most engaged buckets.

One run walks a fixed lifecycle: ``running`` then ``ok`` or ``error``. The
run row is committed before any work starts so operators can see it, and is
closed exactly once. Snapshots written before a failure are kept; the run
details list them so the partial state is visible.
"""

import asyncio
import contextlib
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from uptodate.config import Settings
from uptodate.errors import IngestionInProgress, SchemaError, UpstreamError, UptodateError
from uptodate.models.ingestion_run import RUN_ERROR, RUN_OK
from uptodate.schemas.content import RawItem
from uptodate.schemas.snapshot import LocationContext, TopicSnapshotPayload
from uptodate.services.content_source import ContentSource
from uptodate.services.geobucket import GLOBAL_BUCKET, bucket_id_to_approx_coords
from uptodate.services.summarizer import SummarizationProvider
from uptodate.stores.content import ContentItemStore
from uptodate.stores.events import EventStore
from uptodate.stores.runs import RunStore
from uptodate.stores.snapshots import SnapshotStore
from uptodate.utils import utc_today

logger = logging.getLogger(__name__)


def select_fanout_targets(counts: Counter, top_k: int) -> list[str]:
    """The sentinel first, then the ``top_k`` busiest real buckets."""
    ranked = [
        bucket_id
        for bucket_id, _count in counts.most_common()
        if bucket_id and bucket_id != GLOBAL_BUCKET
    ]
    return [GLOBAL_BUCKET, *ranked[:top_k]]


def location_context_for(bucket_id: str) -> LocationContext:
    """Approximate context for a bucket; empty for the sentinel."""
    coords = bucket_id_to_approx_coords(bucket_id)
    if coords is None:
        return LocationContext()
    return LocationContext(latitude=coords.latitude, longitude=coords.longitude)


@dataclass
class IngestionResult:
    run_id: str
    snapshot_date: str
    target_buckets: list[str] = field(default_factory=list)
    generated_buckets: list[str] = field(default_factory=list)
    fetched_items: int = 0
    stored_items: int = 0
    generation_items: int = 0

    def details(self) -> dict:
        return {
            "date": self.snapshot_date,
            "targetBuckets": self.target_buckets,
            "generatedBuckets": self.generated_buckets,
            "fetchedItems": self.fetched_items,
            "storedItems": self.stored_items,
            "generationItems": self.generation_items,
        }


class IngestionPipeline:
    """Refreshes snapshots for the sentinel plus the most active buckets."""

    def __init__(
        self,
        db: AsyncSession,
        content_source: ContentSource,
        provider: SummarizationProvider,
        settings: Settings,
    ) -> None:
        self.db = db
        self.content_source = content_source
        self.provider = provider
        self.settings = settings
        self.runs = RunStore(db)
        self.events = EventStore(db)
        self.items = ContentItemStore(db)
        self.snapshots = SnapshotStore(db)

    async def run(self, snapshot_date: str | None = None) -> IngestionResult:
        """Execute one run. Re-raises the failure after recording it."""
        snapshot_date = snapshot_date or utc_today()

        run_id = await self._open_run(snapshot_date)
        logger.info("Ingestion run %s started for %s", run_id, snapshot_date)

        result = IngestionResult(run_id=run_id, snapshot_date=snapshot_date)
        try:
            await self._execute(result)
        except Exception as exc:
            await self._close(
                run_id, RUN_ERROR, self._error_details(exc, result), discard_pending=True
            )
            logger.error(
                "Ingestion run %s failed after %d/%d buckets: %s",
                run_id,
                len(result.generated_buckets),
                len(result.target_buckets),
                exc,
            )
            raise

        await self._close(run_id, RUN_OK, result.details())
        logger.info(
            "Ingestion run %s finished: %d buckets, %d items fetched, %d new",
            run_id,
            len(result.generated_buckets),
            result.fetched_items,
            result.stored_items,
        )
        return result

    async def _open_run(self, snapshot_date: str) -> str:
        """Claim the single active-run slot, or raise IngestionInProgress.

        The unique index on running rows makes the claim atomic; the
        ``active_since`` read only gives the common case a clearer message.
        """
        stale_after = timedelta(seconds=self.settings.ingest_run_stale_seconds)
        cutoff = datetime.now(timezone.utc) - stale_after
        abandoned = await self.runs.expire_stale(cutoff)
        await self.db.commit()
        if abandoned:
            logger.warning("Marked abandoned ingestion runs as failed: %s", ", ".join(abandoned))

        active = await self.runs.active_since(cutoff)
        if active is not None:
            raise IngestionInProgress(f"Ingestion run {active.id} is still running")

        try:
            run = await self.runs.open({"date": snapshot_date})
            run_id = run.id
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise IngestionInProgress() from exc
        return run_id

    async def _execute(self, result: IngestionResult) -> None:
        window = timedelta(hours=self.settings.engagement_window_hours)
        counts = await self.events.bucket_counts_since(
            datetime.now(timezone.utc) - window,
            self.settings.engagement_scan_limit,
        )
        result.target_buckets = select_fanout_targets(counts, self.settings.fanout_top_k)

        fetched = await self.content_source.fetch(self.settings.content_max_items)
        result.fetched_items = len(fetched)
        result.stored_items = await self.items.insert_new(fetched)
        await self.db.commit()

        # Every bucket in the run sees the same persisted item set
        items = await self.items.latest(self.settings.generation_item_limit)
        result.generation_items = len(items)

        for bucket_id in result.target_buckets:
            snapshot = await self._generate(bucket_id, items)
            await self.snapshots.upsert(
                bucket_id, result.snapshot_date, snapshot.to_document(), run_id=result.run_id
            )
            await self.db.commit()
            result.generated_buckets.append(bucket_id)
            logger.info(
                "Stored snapshot %s/%s with %d topics",
                bucket_id,
                result.snapshot_date,
                len(snapshot.topics),
            )

    async def _generate(self, bucket_id: str, items: list[RawItem]) -> TopicSnapshotPayload:
        context = location_context_for(bucket_id)
        timeout = self.settings.summarization_timeout_seconds
        try:
            snapshot = await asyncio.wait_for(
                self.provider.generate(context, items), timeout=timeout
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamError(
                upstream_message=f"summarization timed out after {timeout}s for {bucket_id}"
            ) from exc

        if not isinstance(snapshot, TopicSnapshotPayload):
            raise SchemaError(f"Summarization provider returned {type(snapshot).__name__}")

        updates = {}
        if snapshot.generated_at is None:
            updates["generated_at"] = datetime.now(timezone.utc).isoformat()
        provided = snapshot.location_context
        if provided is None:
            updates["location_context"] = context
        elif provided.latitude is None and provided.longitude is None:
            updates["location_context"] = provided.model_copy(
                update={"latitude": context.latitude, "longitude": context.longitude}
            )
        return snapshot.model_copy(update=updates) if updates else snapshot

    def _error_details(self, exc: Exception, result: IngestionResult) -> dict:
        details = result.details()
        details["error"] = exc.kind if isinstance(exc, UptodateError) else type(exc).__name__
        details["message"] = str(exc)
        if isinstance(exc, UpstreamError):
            details["upstreamStatus"] = exc.upstream_status
            details["upstreamMessage"] = exc.upstream_message
        details["partial"] = bool(result.generated_buckets)
        return details

    async def _close(
        self, run_id: str, status: str, details: dict, discard_pending: bool = False
    ) -> None:
        """Write the terminal run record. Failures here are logged, never raised."""
        try:
            if discard_pending:
                await self.db.rollback()
            await self.runs.close(run_id, status, details)
            await self.db.commit()
        except Exception:
            logger.exception("Failed to close ingestion run %s as %s", run_id, status)
            with contextlib.suppress(Exception):
                await self.db.rollback()
