"""Feed endpoint - ranked topics for a location, user and date."""

from fastapi import APIRouter, Depends, Query

from uptodate.dependencies import get_feed_assembler
from uptodate.routers.limits import check_feed_rate_limit
from uptodate.schemas.feed import FeedResponse
from uptodate.services.feed_assembler import ANONYMOUS_USER, FeedAssembler

router = APIRouter(prefix="/v1", tags=["feed"])


@router.get(
    "/feed",
    response_model=FeedResponse,
    dependencies=[Depends(check_feed_rate_limit)],
)
async def get_feed(
    lat: float | None = Query(default=None, ge=-90, le=90),
    lng: float | None = Query(default=None, ge=-180, le=180),
    user_id: str = Query(default=ANONYMOUS_USER, alias="userId", min_length=1, max_length=128),
    date: str | None = Query(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    debug: bool = Query(default=False, description="Verbose errors when enabled server-side."),
    assembler: FeedAssembler = Depends(get_feed_assembler),
) -> FeedResponse:
    """Daily topic feed for the caller's location.

    Falls back from the finest geohash cell to coarser ones and finally to
    the global snapshot. Returns 404 while nothing has been generated for
    the date yet.
    """
    feed = await assembler.assemble(lat=lat, lng=lng, user_id=user_id, snapshot_date=date)
    return FeedResponse(
        requested_bucket_id=feed.requested_bucket_id,
        resolved_bucket_id=feed.resolved_bucket_id,
        snapshot_date=feed.snapshot_date,
        generated_at=feed.generated_at,
        topics=feed.topics,
    )
