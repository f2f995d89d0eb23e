"""Content sources - producers of raw items for the ingestion pipeline."""

import asyncio
import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone

import feedparser
import httpx

from uptodate.schemas.content import RawItem

logger = logging.getLogger(__name__)


def make_item_id(source_name: str, title: str) -> str:
    """Stable dedup key for an item.

    Only the title is hashed, so two distinct articles with the same title
    from the same source share an id and the later one is dropped.
    """
    digest = hashlib.sha256(title.encode("utf-8")).hexdigest()[:12]
    return f"rss:{source_name}:{digest}"


class ContentSource(ABC):
    """Base interface for raw content producers."""

    @abstractmethod
    async def fetch(self, max_items: int) -> list[RawItem]:
        """Return up to ``max_items`` items.

        Best effort: a failing sub-source is skipped, never raised.
        """
        raise NotImplementedError


@dataclass(frozen=True)
class FeedSpec:
    url: str
    source: str


_NYT = "https://rss.nytimes.com/services/xml/rss/nyt"

DEFAULT_FEEDS: tuple[FeedSpec, ...] = tuple(
    FeedSpec(f"{_NYT}/{path}.xml", f"NYTimes {name}")
    for path, name in (
        ("HomePage", "Home Page"),
        ("World", "World"),
        ("Politics", "Politics"),
        ("Business", "Business"),
        ("Economy", "Economy"),
        ("Technology", "Technology"),
        ("Climate", "Climate"),
        ("Health", "Health"),
        ("Education", "Education"),
        ("EnergyEnvironment", "Energy Environment"),
        ("Europe", "Europe"),
        ("MiddleEast", "Middle East"),
        ("RealEstate", "Real Estate"),
        ("SmallBusiness", "Small Business"),
        ("YourMoney", "Your Money"),
        ("Soccer", "Soccer"),
        ("Baseball", "Baseball"),
        ("Tennis", "Tennis"),
        ("Golf", "Golf"),
        ("Hockey", "Hockey"),
        ("Books/Review", "Books Review"),
        ("DiningandWine", "Dining and Wine"),
        ("FashionandStyle", "Fashion and Style"),
        ("MostEmailed", "Most Emailed"),
    )
)


def _entry_published(entry) -> datetime | None:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return datetime(*parsed[:6], tzinfo=timezone.utc)


def parse_feed(text: str, source: str) -> list[RawItem]:
    """Parse RSS/Atom text into raw items, skipping untitled entries."""
    feed = feedparser.parse(text)
    items: list[RawItem] = []
    for entry in feed.entries:
        title = (entry.get("title") or "").strip()
        if not title:
            continue
        snippet = (entry.get("summary") or "").strip()
        link = (entry.get("link") or "").strip()
        items.append(
            RawItem(
                id=make_item_id(source, title),
                source_type="news",
                source_name=source,
                title=title,
                snippet=snippet or None,
                url=link or None,
                published_at=_entry_published(entry),
            )
        )
    return items


class RssContentSource(ContentSource):
    """Fetches a fixed list of RSS feeds concurrently."""

    def __init__(
        self,
        feeds: tuple[FeedSpec, ...] | list[FeedSpec] = DEFAULT_FEEDS,
        timeout: float = 10.0,
    ) -> None:
        self.feeds = list(feeds)
        self.timeout = timeout

    async def _fetch_one(self, client: httpx.AsyncClient, feed: FeedSpec) -> list[RawItem]:
        try:
            response = await client.get(feed.url)
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("Feed %s timed out, skipping", feed.url)
            return []
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Feed %s returned %d, skipping", feed.url, exc.response.status_code
            )
            return []
        except httpx.RequestError as exc:
            logger.warning("Feed %s failed: %s, skipping", feed.url, exc)
            return []

        try:
            return parse_feed(response.text, feed.source)
        except Exception:
            logger.exception("Feed %s could not be parsed, skipping", feed.url)
            return []

    async def fetch(self, max_items: int) -> list[RawItem]:
        if max_items <= 0 or not self.feeds:
            return []

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            per_feed = await asyncio.gather(
                *(self._fetch_one(client, feed) for feed in self.feeds)
            )

        items: list[RawItem] = []
        for feed_items in per_feed:
            for item in feed_items:
                if len(items) >= max_items:
                    return items
                items.append(item)
        return items
