"""Affinity scoring strategies.

Two models of the same per-user topic preference live behind one interface:

* ``StoredAffinityScorer`` reads the authoritative accumulated score that
  ``EventScorer`` maintains on the server.
* ``DecayedAffinityScorer`` keeps a local, recency-weighted estimate (7 day
  half-life) for instant re-ranking before a round trip completes.

They are intentionally different and are not expected to agree. The HTTP
feed uses the stored scorer; the decayed one serves callers that embed
``FeedAssembler`` and feed a ``PreferenceLog`` from their own signals.
"""

import time
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass

from uptodate.stores.affinity import AffinityStore

HALF_LIFE_DAYS = 7.0
_MS_PER_DAY = 1000 * 60 * 60 * 24


class AffinityScorer(ABC):
    """Per-user, per-topic preference lookup."""

    @abstractmethod
    async def score_for(self, user_id: str, topic_id: str) -> float:
        raise NotImplementedError

    async def scores_for(self, user_id: str, topic_ids: list[str]) -> dict[str, float]:
        """Bulk lookup; every requested topic is present in the result."""
        return {topic_id: await self.score_for(user_id, topic_id) for topic_id in topic_ids}


class StoredAffinityScorer(AffinityScorer):
    """Authoritative server-side score (monotonic accumulation)."""

    def __init__(self, store: AffinityStore) -> None:
        self.store = store

    async def score_for(self, user_id: str, topic_id: str) -> float:
        return await self.store.get(user_id, topic_id)

    async def scores_for(self, user_id: str, topic_ids: list[str]) -> dict[str, float]:
        stored = await self.store.get_many(user_id, topic_ids)
        return {topic_id: stored.get(topic_id, 0.0) for topic_id in topic_ids}


@dataclass(frozen=True)
class PreferenceSignal:
    topic_id: str
    preference_score: float  # -1 dislike, +1 like
    timestamp_ms: int


class PreferenceLog:
    """In-memory history of signed preference signals per (user, topic)."""

    def __init__(self) -> None:
        self._signals: dict[str, dict[str, list[PreferenceSignal]]] = defaultdict(
            lambda: defaultdict(list)
        )

    def record(self, user_id: str, signal: PreferenceSignal) -> None:
        self._signals[user_id][signal.topic_id].append(signal)

    def signals_for(self, user_id: str, topic_id: str) -> list[PreferenceSignal]:
        return list(self._signals.get(user_id, {}).get(topic_id, []))

    def topic_ids(self, user_id: str) -> list[str]:
        return list(self._signals.get(user_id, {}))

    def clear(self, user_id: str | None = None) -> None:
        if user_id is None:
            self._signals.clear()
        else:
            self._signals.pop(user_id, None)


def decay_weight(age_ms: float, half_life_days: float = HALF_LIFE_DAYS) -> float:
    """Weight of a signal ``age_ms`` old; halves every ``half_life_days``."""
    age_days = age_ms / _MS_PER_DAY
    return 0.5 ** (age_days / half_life_days)


class DecayedAffinityScorer(AffinityScorer):
    """Recency-weighted average of a user's preference signals."""

    def __init__(
        self,
        log: PreferenceLog,
        half_life_days: float = HALF_LIFE_DAYS,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.log = log
        self.half_life_days = half_life_days
        self.clock = clock or (lambda: int(time.time() * 1000))

    def estimate(self, user_id: str, topic_id: str) -> float:
        signals = self.log.signals_for(user_id, topic_id)
        if not signals:
            return 0.0
        now = self.clock()
        total_score = 0.0
        total_weight = 0.0
        for signal in signals:
            weight = decay_weight(now - signal.timestamp_ms, self.half_life_days)
            total_score += signal.preference_score * weight
            total_weight += weight
        return total_score / total_weight if total_weight > 0 else 0.0

    async def score_for(self, user_id: str, topic_id: str) -> float:
        return self.estimate(user_id, topic_id)

    def all_scores(self, user_id: str) -> dict[str, float]:
        return {
            topic_id: self.estimate(user_id, topic_id)
            for topic_id in self.log.topic_ids(user_id)
        }
