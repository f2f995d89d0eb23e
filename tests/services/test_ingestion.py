"""Tests for the ingestion pipeline lifecycle."""

import asyncio
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from uptodate.db.engine import build_engine, build_session_factory, create_tables
from uptodate.errors import IngestionInProgress, SchemaError, UpstreamError
from uptodate.models import ContentItem, IngestionRun, TopicSnapshot, UserEvent
from uptodate.models.ingestion_run import RUN_ERROR, RUN_OK
from uptodate.schemas.snapshot import LocationContext
from uptodate.services.geobucket import GLOBAL_BUCKET
from uptodate.services.ingestion import (
    IngestionPipeline,
    location_context_for,
    select_fanout_targets,
)
from uptodate.stores.runs import RunStore
from uptodate.stores.snapshots import SnapshotStore

DATE = "2026-10-19"


async def _add_events(db_session, bucket_id: str, count: int) -> None:
    db_session.add_all(
        UserEvent(
            user_id=f"user-{index}",
            bucket_id=bucket_id,
            snapshot_date=DATE,
            event_type="topic_open",
            topic_id="t",
        )
        for index in range(count)
    )
    await db_session.commit()


async def _runs(db_session) -> list[IngestionRun]:
    result = await db_session.execute(select(IngestionRun))
    return list(result.scalars().all())


class TestSelectFanoutTargets:
    def test_global_always_first(self):
        assert select_fanout_targets(Counter(), top_k=10) == [GLOBAL_BUCKET]

    def test_busiest_buckets_follow(self):
        counts = Counter({"gh5:aaaaa": 3, "gh5:bbbbb": 7, "gh5:ccccc": 1})
        assert select_fanout_targets(counts, top_k=2) == [GLOBAL_BUCKET, "gh5:bbbbb", "gh5:aaaaa"]

    def test_global_is_not_duplicated(self):
        counts = Counter({GLOBAL_BUCKET: 50, "gh5:aaaaa": 1})
        assert select_fanout_targets(counts, top_k=5) == [GLOBAL_BUCKET, "gh5:aaaaa"]


class TestLocationContext:
    def test_global_has_empty_context(self):
        assert location_context_for(GLOBAL_BUCKET) == LocationContext()

    def test_bucket_has_coordinates(self):
        context = location_context_for("gh5:u4pru")
        assert context.latitude == pytest.approx(57.65, abs=0.05)
        assert context.city is None


class TestIngestionPipeline:
    @pytest.mark.asyncio
    async def test_successful_run_generates_global_and_busy_buckets(
        self, db_session, settings, fake_source, fake_provider
    ):
        await _add_events(db_session, "gh5:u4pru", 2)
        await _add_events(db_session, "gh5:dr5re", 5)

        pipeline = IngestionPipeline(db_session, fake_source, fake_provider, settings)
        result = await pipeline.run(snapshot_date=DATE)

        assert result.target_buckets == [GLOBAL_BUCKET, "gh5:dr5re", "gh5:u4pru"]
        assert result.generated_buckets == result.target_buckets
        assert result.fetched_items == 3
        assert result.stored_items == 3

        store = SnapshotStore(db_session)
        for bucket_id in result.target_buckets:
            assert await store.get(bucket_id, DATE) is not None

        (run,) = await _runs(db_session)
        assert run.status == RUN_OK
        assert run.finished_at is not None
        assert run.details["generatedBuckets"] == result.generated_buckets

    @pytest.mark.asyncio
    async def test_every_bucket_sees_the_same_items(
        self, db_session, settings, fake_source, fake_provider
    ):
        await _add_events(db_session, "gh5:u4pru", 1)

        await IngestionPipeline(db_session, fake_source, fake_provider, settings).run(DATE)

        item_sets = [{item.id for item in items} for _location, items in fake_provider.calls]
        assert len(item_sets) == 2
        assert item_sets[0] == item_sets[1]
        assert fake_provider.calls[0][0] == LocationContext()
        assert fake_provider.calls[1][0].latitude is not None

    @pytest.mark.asyncio
    async def test_missing_generated_at_and_location_are_filled(
        self, db_session, settings, fake_source, fake_provider
    ):
        await _add_events(db_session, "gh5:u4pru", 1)

        await IngestionPipeline(db_session, fake_source, fake_provider, settings).run(DATE)

        document = await SnapshotStore(db_session).get("gh5:u4pru", DATE)
        assert document["generatedAt"]
        assert document["locationContext"]["latitude"] == pytest.approx(57.65, abs=0.05)

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, db_session, settings, fake_source, fake_provider):
        pipeline = IngestionPipeline(db_session, fake_source, fake_provider, settings)
        await pipeline.run(DATE)
        second = await pipeline.run(DATE)

        assert second.stored_items == 0
        assert await db_session.scalar(select(func.count()).select_from(ContentItem)) == 3
        assert await db_session.scalar(select(func.count()).select_from(TopicSnapshot)) == 1
        assert [run.status for run in await _runs(db_session)] == [RUN_OK, RUN_OK]

    @pytest.mark.asyncio
    async def test_failure_keeps_partial_snapshots_and_records_error(
        self, db_session, settings, fake_source, provider_factory
    ):
        await _add_events(db_session, "gh5:u4pru", 1)
        provider = provider_factory(
            fail_on_call=2,
            error=UpstreamError(upstream_status=503, upstream_message="overloaded"),
        )

        with pytest.raises(UpstreamError):
            await IngestionPipeline(db_session, fake_source, provider, settings).run(DATE)

        store = SnapshotStore(db_session)
        assert await store.get(GLOBAL_BUCKET, DATE) is not None
        assert await store.get("gh5:u4pru", DATE) is None
        # Items fetched before the failure stay stored
        assert await db_session.scalar(select(func.count()).select_from(ContentItem)) == 3

        (run,) = await _runs(db_session)
        assert run.status == RUN_ERROR
        assert run.details["error"] == "upstream_error"
        assert run.details["upstreamStatus"] == 503
        assert run.details["upstreamMessage"] == "overloaded"
        assert run.details["generatedBuckets"] == [GLOBAL_BUCKET]
        assert run.details["partial"] is True

    @pytest.mark.asyncio
    async def test_schema_error_marks_run_failed(
        self, db_session, settings, fake_source, provider_factory
    ):
        provider = provider_factory(fail_on_call=1, error=SchemaError())

        with pytest.raises(SchemaError):
            await IngestionPipeline(db_session, fake_source, provider, settings).run(DATE)

        (run,) = await _runs(db_session)
        assert run.status == RUN_ERROR
        assert run.details["error"] == "schema_error"
        assert run.details["partial"] is False

    @pytest.mark.asyncio
    async def test_provider_timeout_becomes_upstream_error(
        self, db_session, fake_source, provider_factory, settings
    ):
        settings.summarization_timeout_seconds = 0.05
        provider = provider_factory(delay=1.0)

        with pytest.raises(UpstreamError) as exc_info:
            await IngestionPipeline(db_session, fake_source, provider, settings).run(DATE)

        assert "timed out" in exc_info.value.upstream_message
        (run,) = await _runs(db_session)
        assert run.status == RUN_ERROR

    @pytest.mark.asyncio
    async def test_unexpected_error_is_recorded_and_reraised(
        self, db_session, settings, fake_source, provider_factory
    ):
        provider = provider_factory(fail_on_call=1, error=RuntimeError("disk full"))

        with pytest.raises(RuntimeError):
            await IngestionPipeline(db_session, fake_source, provider, settings).run(DATE)

        (run,) = await _runs(db_session)
        assert run.status == RUN_ERROR
        assert run.details["error"] == "RuntimeError"
        assert run.details["message"] == "disk full"

    @pytest.mark.asyncio
    async def test_active_run_blocks_a_second_one(
        self, db_session, settings, fake_source, fake_provider
    ):
        await RunStore(db_session).open({"date": DATE})
        await db_session.commit()

        with pytest.raises(IngestionInProgress):
            await IngestionPipeline(db_session, fake_source, fake_provider, settings).run(DATE)

        assert fake_source.calls == 0
        assert len(await _runs(db_session)) == 1

    @pytest.mark.asyncio
    async def test_stale_running_run_is_abandoned_and_does_not_block(
        self, db_session, settings, fake_source, fake_provider
    ):
        stale = await RunStore(db_session).open({"date": "2026-10-18"})
        stale.started_at = datetime.now(timezone.utc) - timedelta(
            seconds=settings.ingest_run_stale_seconds + 60
        )
        await db_session.commit()

        result = await IngestionPipeline(db_session, fake_source, fake_provider, settings).run(DATE)

        assert result.generated_buckets == [GLOBAL_BUCKET]
        assert stale.status == RUN_ERROR
        assert stale.details["error"] == "abandoned"
        statuses = sorted(run.status for run in await _runs(db_session))
        assert statuses == sorted([RUN_OK, RUN_ERROR])

    @pytest.mark.asyncio
    async def test_failure_to_close_run_is_logged_not_raised(
        self, db_session, settings, fake_source, fake_provider, monkeypatch, caplog
    ):
        pipeline = IngestionPipeline(db_session, fake_source, fake_provider, settings)

        async def broken_close(run_id, status, details):
            raise RuntimeError("database went away")

        monkeypatch.setattr(pipeline.runs, "close", broken_close)

        with caplog.at_level(logging.ERROR, logger="uptodate.services.ingestion"):
            result = await pipeline.run(DATE)

        assert result.generated_buckets == [GLOBAL_BUCKET]
        assert "Failed to close ingestion run" in caplog.text

    @pytest.mark.asyncio
    async def test_failure_to_close_does_not_mask_the_original_error(
        self, db_session, settings, fake_source, provider_factory, monkeypatch, caplog
    ):
        provider = provider_factory(fail_on_call=1, error=SchemaError())
        pipeline = IngestionPipeline(db_session, fake_source, provider, settings)

        async def broken_close(run_id, status, details):
            raise RuntimeError("database went away")

        monkeypatch.setattr(pipeline.runs, "close", broken_close)

        with caplog.at_level(logging.ERROR, logger="uptodate.services.ingestion"):
            with pytest.raises(SchemaError):
                await pipeline.run(DATE)

        assert "Failed to close ingestion run" in caplog.text

    @pytest.mark.asyncio
    async def test_empty_content_still_generates(
        self, db_session, settings, provider_factory
    ):
        class EmptySource:
            async def fetch(self, max_items):
                return []

        provider = provider_factory()
        result = await IngestionPipeline(db_session, EmptySource(), provider, settings).run(DATE)

        assert result.fetched_items == 0
        assert provider.calls[0][1] == []


class TestConcurrentRuns:
    @pytest.mark.asyncio
    async def test_overlapping_runs_on_separate_sessions_admit_only_one(
        self, tmp_path, settings, fake_source, provider_factory
    ):
        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'runs.db'}")
        await create_tables(engine)
        factory = build_session_factory(engine)
        provider = provider_factory(delay=0.2)

        async def trigger():
            async with factory() as session:
                return await IngestionPipeline(session, fake_source, provider, settings).run(DATE)

        try:
            outcomes = await asyncio.gather(trigger(), trigger(), return_exceptions=True)

            async with factory() as session:
                runs = list((await session.execute(select(IngestionRun))).scalars().all())
        finally:
            await engine.dispose()

        refused = [o for o in outcomes if isinstance(o, IngestionInProgress)]
        finished = [o for o in outcomes if not isinstance(o, BaseException)]
        assert len(refused) == 1
        assert len(finished) == 1
        assert [run.status for run in runs] == [RUN_OK]
