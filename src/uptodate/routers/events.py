"""Events endpoint - record interactions and update affinity scores."""

import logging

from fastapi import APIRouter, Depends, status

from uptodate.dependencies import get_event_scorer
from uptodate.routers.limits import check_events_rate_limit
from uptodate.schemas.events import EventBatch, EventsResponse
from uptodate.services.event_scoring import EventScorer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["events"])


@router.post(
    "/events",
    response_model=EventsResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(check_events_rate_limit)],
)
async def post_events(
    payload: EventBatch,
    scorer: EventScorer = Depends(get_event_scorer),
) -> EventsResponse:
    """Receive a batch of interaction events from the client.

    Malformed batches are rejected with 400 before anything is written.
    """
    result = await scorer.record(payload)
    return EventsResponse(
        events_recorded=result.events_recorded,
        topics_scored=result.topics_scored,
    )
