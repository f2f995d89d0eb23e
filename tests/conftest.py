"""Test fixtures and configuration."""

import asyncio
from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from uptodate.config import Settings, get_settings
from uptodate.dependencies import get_content_source, get_db, get_summarizer
from uptodate.main import create_app
from uptodate.models import Base
from uptodate.schemas.content import RawItem
from uptodate.schemas.snapshot import LocationContext, SubTopic, Topic, TopicSnapshotPayload
from uptodate.services.content_source import ContentSource
from uptodate.services.summarizer import SummarizationProvider


def build_topic(
    topic_id: str,
    trend_score: float | None = None,
    location_relevance: float | None = None,
) -> Topic:
    return Topic(
        id=topic_id,
        title=f"Topic {topic_id}",
        summary=f"What happened with {topic_id}",
        trend_score=trend_score,
        location_relevance=location_relevance,
        supporting_item_ids=[f"rss:test:{topic_id}"],
        sub_topics=[
            SubTopic(
                id=f"{topic_id}-detail",
                title=f"{topic_id} detail",
                summary="More context",
                supporting_item_ids=[],
            )
        ],
    )


def build_snapshot(*topics: Topic, generated_at: str | None = "2026-10-19T06:00:00Z") -> TopicSnapshotPayload:
    return TopicSnapshotPayload(
        generated_at=generated_at,
        location_context=LocationContext(),
        topics=list(topics) or [build_topic("t1", trend_score=1.0)],
    )


class FakeContentSource(ContentSource):
    """Returns a fixed list of items and counts calls."""

    def __init__(self, items: list[RawItem] | None = None) -> None:
        self.items = items or []
        self.calls = 0

    async def fetch(self, max_items: int) -> list[RawItem]:
        self.calls += 1
        return self.items[:max_items]


class FakeSummarizer(SummarizationProvider):
    """Produces one topic per call.

    With ``error`` set it raises on call ``fail_on_call``, or on every call
    when ``fail_on_call`` is None.
    """

    def __init__(
        self,
        fail_on_call: int | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        generated_at: str | None = None,
    ) -> None:
        self.fail_on_call = fail_on_call
        self.error = error
        self.delay = delay
        self.generated_at = generated_at
        self.calls: list[tuple[LocationContext, list[RawItem]]] = []

    async def generate(self, location, items):
        self.calls.append((location, list(items)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None and (
            self.fail_on_call is None or len(self.calls) == self.fail_on_call
        ):
            raise self.error
        topic = build_topic(f"topic-{len(self.calls)}", trend_score=float(len(items)))
        return build_snapshot(topic, generated_at=self.generated_at)


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Settings are cached per process; tests that patch env need a fresh read."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        fanout_top_k=3,
        summarization_timeout_seconds=5.0,
    )


@pytest.fixture
def raw_items() -> list[RawItem]:
    return [
        RawItem(
            id=f"rss:NYTimes World:{index:012x}",
            source_name="NYTimes World",
            title=f"Headline {index}",
            snippet=f"Snippet {index}",
            url=f"https://example.com/{index}",
        )
        for index in range(3)
    ]


@pytest.fixture
def fake_source(raw_items) -> FakeContentSource:
    return FakeContentSource(raw_items)


@pytest.fixture
def fake_provider() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def snapshot_factory() -> Callable[..., TopicSnapshotPayload]:
    return build_snapshot


@pytest.fixture
def topic_factory() -> Callable[..., Topic]:
    return build_topic


@pytest_asyncio.fixture
async def db_engine():
    """Create an in-memory SQLite engine for tests."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session bound to the test engine."""
    factory = async_sessionmaker(
        bind=db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def app(db_engine, fake_source, fake_provider):
    """Application with the database and external collaborators overridden."""
    factory = async_sessionmaker(
        bind=db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async def override_get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application = create_app()
    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_content_source] = lambda: fake_source
    application.dependency_overrides[get_summarizer] = lambda: fake_provider
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client against the overridden app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict:
    return {"Authorization": "Bearer change-me"}


@pytest.fixture
def provider_factory() -> type[FakeSummarizer]:
    return FakeSummarizer
