"""FastAPI dependency injection functions.

Services are assembled per request from explicit collaborators; nothing here
caches a service instance across requests.
"""

import hmac
from collections.abc import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from uptodate.config import Settings, get_settings
from uptodate.db.engine import get_session
from uptodate.services.affinity import StoredAffinityScorer
from uptodate.services.content_source import ContentSource, RssContentSource
from uptodate.services.event_scoring import EventScorer
from uptodate.services.feed_assembler import FeedAssembler
from uptodate.services.summarizer import OpenAISummarizer, SummarizationProvider
from uptodate.stores.affinity import AffinityStore, KeyedLocks
from uptodate.stores.events import EventStore
from uptodate.stores.snapshots import SnapshotStore


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async for session in get_session():
        yield session


def get_app_settings() -> Settings:
    """Return application settings."""
    return get_settings()


def get_affinity_locks(request: Request) -> KeyedLocks:
    """Per-(user, topic) write locks owned by the running application."""
    return request.app.state.affinity_locks


def get_affinity_store(
    db: AsyncSession = Depends(get_db),
    locks: KeyedLocks = Depends(get_affinity_locks),
) -> AffinityStore:
    return AffinityStore(db, locks)


def get_feed_assembler(
    db: AsyncSession = Depends(get_db),
    affinity: AffinityStore = Depends(get_affinity_store),
) -> FeedAssembler:
    return FeedAssembler(SnapshotStore(db), StoredAffinityScorer(affinity))


def get_event_scorer(
    db: AsyncSession = Depends(get_db),
    affinity: AffinityStore = Depends(get_affinity_store),
) -> EventScorer:
    return EventScorer(EventStore(db), affinity)


def get_content_source(
    settings: Settings = Depends(get_app_settings),
) -> ContentSource:
    return RssContentSource(timeout=settings.content_fetch_timeout_seconds)


def get_summarizer(
    settings: Settings = Depends(get_app_settings),
) -> SummarizationProvider:
    return OpenAISummarizer(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        temperature=settings.openai_temperature,
        max_tokens=settings.openai_max_tokens,
        timeout=settings.summarization_timeout_seconds,
    )


async def verify_admin_key(
    authorization: str = Header(..., description="Bearer <admin_api_key>"),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Verify Bearer token auth for operator endpoints."""
    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header must use Bearer scheme",
        )

    raw_key = authorization[7:].strip()
    if not raw_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin API key is required",
        )

    # Timing-safe comparison to prevent timing side-channel attacks
    if not hmac.compare_digest(raw_key.encode(), settings.admin_api_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin API key",
        )
