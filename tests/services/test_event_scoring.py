"""Tests for event deltas and the event scorer."""

import math

import pytest
from sqlalchemy import func, select

from uptodate.models import UserEvent
from uptodate.schemas.events import EventBatch, EventIn
from uptodate.services.event_scoring import (
    DWELL_WEIGHT,
    EventScorer,
    aggregate_deltas,
    dwell_delta,
    score_delta,
)
from uptodate.stores.affinity import AffinityStore
from uptodate.stores.events import EventStore


def _batch(*events: EventIn, user_id: str = "u1") -> EventBatch:
    return EventBatch(
        user_id=user_id,
        bucket_id="gh5:u4pru",
        snapshot_date="2026-10-19",
        events=list(events),
    )


class TestDeltas:
    @pytest.mark.parametrize(
        "event_type,expected",
        [
            ("topic_swipe_right", 2.0),
            ("topic_swipe_left", -3.0),
            ("topic_open", 0.6),
            ("subtopic_open", 0.5),
        ],
    )
    def test_fixed_weights(self, event_type, expected):
        assert score_delta(EventIn(type=event_type, topic_id="t")) == expected

    def test_dwell_is_logarithmic_in_seconds(self):
        assert dwell_delta(1000) == pytest.approx(math.log(2) * DWELL_WEIGHT)
        assert dwell_delta(9000) == pytest.approx(math.log(10) * DWELL_WEIGHT)

    @pytest.mark.parametrize("dwell_ms", [None, 0, -5000])
    def test_dwell_never_negative(self, dwell_ms):
        assert dwell_delta(dwell_ms) == 0.0

    def test_dwell_event_uses_dwell_ms(self):
        event = EventIn(type="dwell_time", topic_id="t", dwell_ms=4000)
        assert score_delta(event) == pytest.approx(math.log(5) * DWELL_WEIGHT)

    def test_aggregate_sums_per_topic_and_skips_missing_topic(self):
        totals = aggregate_deltas(
            [
                EventIn(type="topic_swipe_right", topic_id="a"),
                EventIn(type="topic_open", topic_id="a"),
                EventIn(type="topic_swipe_left", topic_id="b"),
                EventIn(type="topic_open"),
                EventIn(type="topic_open", topic_id=""),
            ]
        )
        assert totals == {"a": pytest.approx(2.6), "b": -3.0}


class TestEventScorer:
    @pytest.mark.asyncio
    async def test_records_every_event_and_updates_scores(self, db_session):
        affinity = AffinityStore(db_session)
        scorer = EventScorer(EventStore(db_session), affinity)

        result = await scorer.record(
            _batch(
                EventIn(type="topic_swipe_right", topic_id="a", ts=1),
                EventIn(type="topic_swipe_right", topic_id="a", ts=1),
                EventIn(type="subtopic_open", topic_id="b", subtopic_id="b-1"),
                EventIn(type="topic_open"),
            )
        )
        await db_session.commit()

        assert result.events_recorded == 4
        assert result.topics_scored == 2
        assert await affinity.get("u1", "a") == pytest.approx(4.0)
        assert await affinity.get("u1", "b") == pytest.approx(0.5)

        count = await db_session.scalar(select(func.count()).select_from(UserEvent))
        assert count == 4

    @pytest.mark.asyncio
    async def test_scores_accumulate_across_batches(self, db_session):
        affinity = AffinityStore(db_session)
        scorer = EventScorer(EventStore(db_session), affinity)

        await scorer.record(_batch(EventIn(type="topic_swipe_right", topic_id="a")))
        await scorer.record(_batch(EventIn(type="topic_swipe_left", topic_id="a")))
        await db_session.commit()

        assert await affinity.get("u1", "a") == pytest.approx(-1.0)

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, db_session):
        affinity = AffinityStore(db_session)
        scorer = EventScorer(EventStore(db_session), affinity)

        await scorer.record(_batch(EventIn(type="topic_swipe_right", topic_id="a"), user_id="u1"))
        await db_session.commit()

        assert await affinity.get("u2", "a") == 0.0

    @pytest.mark.asyncio
    async def test_empty_batch_records_nothing(self, db_session):
        scorer = EventScorer(EventStore(db_session), AffinityStore(db_session))
        result = await scorer.record(_batch())
        assert result.events_recorded == 0
        assert result.topics_scored == 0

    @pytest.mark.asyncio
    async def test_zero_dwell_records_event_but_skips_score(self, db_session):
        affinity = AffinityStore(db_session)
        scorer = EventScorer(EventStore(db_session), affinity)

        result = await scorer.record(_batch(EventIn(type="dwell_time", topic_id="a", dwell_ms=0)))

        assert result.events_recorded == 1
        assert result.topics_scored == 0
        assert await affinity.get_many("u1", ["a"]) == {}
