"""Feed assembly - resolve the nearest snapshot and rank it for a user."""

import logging
from dataclasses import dataclass

from uptodate.errors import NotFound
from uptodate.schemas.snapshot import Topic, TopicSnapshotPayload
from uptodate.services.affinity import AffinityScorer
from uptodate.services.geobucket import GLOBAL_BUCKET, bucket_fallback_chain, to_bucket_id
from uptodate.stores.snapshots import SnapshotStore
from uptodate.utils import utc_today

logger = logging.getLogger(__name__)

ANONYMOUS_USER = "anonymous"


@dataclass
class AssembledFeed:
    requested_bucket_id: str
    resolved_bucket_id: str
    snapshot_date: str
    generated_at: str | None
    topics: list[Topic]


def intrinsic_score(topic: Topic) -> float:
    return (topic.location_relevance or 0.0) + (topic.trend_score or 0.0)


def rank_topics(topics: list[Topic], affinity: dict[str, float]) -> list[Topic]:
    """Order by intrinsic score plus affinity, highest first; ties keep input order."""
    return sorted(
        topics,
        key=lambda topic: intrinsic_score(topic) + affinity.get(topic.id, 0.0),
        reverse=True,
    )


class FeedAssembler:
    """Answers feed reads from the snapshot store and an affinity scorer."""

    def __init__(self, snapshots: SnapshotStore, affinity: AffinityScorer) -> None:
        self.snapshots = snapshots
        self.affinity = affinity

    async def resolve(
        self, chain: list[str], snapshot_date: str
    ) -> tuple[str, TopicSnapshotPayload]:
        """Return the first (bucket, snapshot) on ``chain`` that has content."""
        for bucket_id in chain:
            document = await self.snapshots.get(bucket_id, snapshot_date)
            if document is not None:
                return bucket_id, TopicSnapshotPayload.model_validate(document)
        raise NotFound()

    async def assemble(
        self,
        lat: float | None = None,
        lng: float | None = None,
        user_id: str = ANONYMOUS_USER,
        snapshot_date: str | None = None,
    ) -> AssembledFeed:
        snapshot_date = snapshot_date or utc_today()
        user_id = user_id or ANONYMOUS_USER

        if lat is not None and lng is not None:
            requested = to_bucket_id(lat, lng)
            chain = bucket_fallback_chain(lat, lng)
        else:
            requested = GLOBAL_BUCKET
            chain = [GLOBAL_BUCKET]

        resolved, snapshot = await self.resolve(chain, snapshot_date)
        if resolved != requested:
            logger.debug("Feed for %s on %s served from %s", requested, snapshot_date, resolved)

        topic_ids = [topic.id for topic in snapshot.topics]
        scores = await self.affinity.scores_for(user_id, topic_ids)

        return AssembledFeed(
            requested_bucket_id=requested,
            resolved_bucket_id=resolved,
            snapshot_date=snapshot_date,
            generated_at=snapshot.generated_at,
            topics=rank_topics(snapshot.topics, scores),
        )
