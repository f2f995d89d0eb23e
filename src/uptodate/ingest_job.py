"""Scheduled ingestion entry point.

Runs the ingestion pipeline once against the configured database and exits
non-zero when the run fails. Meant for cron or a platform scheduler::

    uptodate-ingest --date 2026-10-19
"""

import argparse
import asyncio
import logging
import re
import sys

from uptodate.config import Settings, get_settings
from uptodate.db.engine import build_engine, build_session_factory, create_tables
from uptodate.errors import UptodateError
from uptodate.services.content_source import ContentSource, RssContentSource
from uptodate.services.ingestion import IngestionPipeline, IngestionResult
from uptodate.services.summarizer import OpenAISummarizer, SummarizationProvider

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _snapshot_date(value: str) -> str:
    if not _DATE_RE.match(value):
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uptodate-ingest",
        description="Fetch content and regenerate topic snapshots once.",
    )
    parser.add_argument(
        "--date",
        type=_snapshot_date,
        default=None,
        help="Snapshot date (YYYY-MM-DD). Defaults to today in UTC.",
    )
    return parser


async def run_ingestion(
    settings: Settings,
    snapshot_date: str | None = None,
    content_source: ContentSource | None = None,
    provider: SummarizationProvider | None = None,
) -> IngestionResult:
    """Run the pipeline once on an engine owned by this call.

    Collaborators default to the RSS source and the OpenAI summarizer
    configured in ``settings``.
    """
    if content_source is None:
        content_source = RssContentSource(timeout=settings.content_fetch_timeout_seconds)
    if provider is None:
        provider = OpenAISummarizer(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            timeout=settings.summarization_timeout_seconds,
        )

    engine = build_engine(settings.database_url)
    try:
        if settings.environment == "development":
            await create_tables(engine)
        async with build_session_factory(engine)() as session:
            pipeline = IngestionPipeline(session, content_source, provider, settings)
            return await pipeline.run(snapshot_date=snapshot_date)
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.environment == "development" else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        result = asyncio.run(run_ingestion(settings, args.date))
    except UptodateError as exc:
        logger.error("Ingestion failed (%s): %s", exc.kind, exc.message)
        return 1

    logger.info(
        "Ingestion %s complete: %s",
        result.run_id,
        ", ".join(result.generated_buckets),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
