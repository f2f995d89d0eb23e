"""Event scoring - turn interaction batches into affinity score updates."""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone

from uptodate.models.user_event import UserEvent
from uptodate.schemas.events import EventBatch, EventIn
from uptodate.stores.affinity import AffinityStore
from uptodate.stores.events import EventStore

logger = logging.getLogger(__name__)

EVENT_WEIGHTS: dict[str, float] = {
    "topic_swipe_right": 2.0,
    "topic_swipe_left": -3.0,
    "topic_open": 0.6,
    "subtopic_open": 0.5,
}

DWELL_WEIGHT = 0.4


def dwell_delta(dwell_ms: int | float | None) -> float:
    """Sub-linear reward for time spent: ln(1 + seconds) * 0.4, never negative."""
    seconds = max(0.0, (dwell_ms or 0) / 1000)
    return math.log1p(seconds) * DWELL_WEIGHT


def score_delta(event: EventIn) -> float:
    """Score change contributed by a single event. Unknown types contribute 0."""
    if event.type == "dwell_time":
        return dwell_delta(event.dwell_ms)
    return EVENT_WEIGHTS.get(event.type, 0.0)


def aggregate_deltas(events: list[EventIn]) -> dict[str, float]:
    """Sum deltas per topic; events without a topic id are skipped."""
    totals: dict[str, float] = defaultdict(float)
    for event in events:
        if not event.topic_id:
            continue
        totals[event.topic_id] += score_delta(event)
    return dict(totals)


@dataclass
class ScoringResult:
    events_recorded: int
    topics_scored: int


class EventScorer:
    """Persists interaction events and accumulates their affinity deltas."""

    def __init__(self, events: EventStore, affinity: AffinityStore) -> None:
        self.events = events
        self.affinity = affinity

    async def record(self, batch: EventBatch) -> ScoringResult:
        rows = [
            UserEvent(
                user_id=batch.user_id,
                bucket_id=batch.bucket_id,
                snapshot_date=batch.snapshot_date,
                event_type=event.type,
                topic_id=event.topic_id or None,
                subtopic_id=event.subtopic_id or None,
                dwell_ms=event.dwell_ms,
                client_ts=event.ts,
            )
            for event in batch.events
        ]
        recorded = await self.events.append(rows)

        now = datetime.now(timezone.utc)
        scored = 0
        for topic_id, delta in aggregate_deltas(batch.events).items():
            if delta == 0:
                continue
            await self.affinity.add(batch.user_id, topic_id, delta, updated_at=now)
            scored += 1

        logger.debug(
            "Recorded %d events for user %s, %d topic scores updated",
            recorded,
            batch.user_id,
            scored,
        )
        return ScoringResult(events_recorded=recorded, topics_scored=scored)
