"""Summarization providers - turn raw items into a topic snapshot."""

import json
import logging
import re
from abc import ABC, abstractmethod

import httpx
from pydantic import ValidationError

from uptodate.errors import SchemaError, UpstreamError
from uptodate.schemas.content import RawItem
from uptodate.schemas.snapshot import LocationContext, TopicSnapshotPayload

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an assistant for the 'Upto Date' app. Convert RAW_ITEMS into a ranked "
    "daily feed. Return ONLY valid JSON (no markdown). Output must match this schema "
    "exactly: {generatedAt: string, locationContext: {city: string|null, country: "
    "string|null, latitude: number|null, longitude: number|null}, topics: Array<{id: "
    "string, title: string, summary: string, source?: string, trendScore?: "
    "number|null, locationRelevance?: number, supportingItemIds: string[], subTopics: "
    "Array<{id: string, title: string, summary: string, supportingItemIds: "
    "string[]}>}>}. Ensure ids are stable strings, unique within the response."
)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def parse_snapshot_text(text: str) -> TopicSnapshotPayload:
    """Validate provider output. Raises SchemaError on any deviation."""
    cleaned = _FENCE_RE.sub("", text or "").strip()
    if not cleaned:
        raise SchemaError("Summarization provider returned an empty response")
    try:
        return TopicSnapshotPayload.model_validate_json(cleaned)
    except ValidationError as exc:
        logger.warning("Provider response failed schema validation: %s", exc)
        raise SchemaError() from exc


class SummarizationProvider(ABC):
    """Base interface for snapshot generators."""

    @abstractmethod
    async def generate(
        self, location: LocationContext, items: list[RawItem]
    ) -> TopicSnapshotPayload:
        """Produce a validated snapshot for ``location`` from ``items``.

        Raises SchemaError for unusable content and UpstreamError for
        transport failures.
        """
        raise NotImplementedError


class OpenAISummarizer(SummarizationProvider):
    """Chat-completions backed provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        base_url: str = "https://api.openai.com/v1",
        temperature: float = 0.4,
        max_tokens: int = 2500,
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    def build_messages(self, location: LocationContext, items: list[RawItem]) -> list[dict]:
        user = json.dumps(
            {
                "locationContext": location.model_dump(by_alias=True),
                "rawItems": [item.to_prompt_dict() for item in items],
            },
            indent=2,
            ensure_ascii=False,
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user},
        ]

    async def generate(
        self, location: LocationContext, items: list[RawItem]
    ) -> TopicSnapshotPayload:
        if not self.api_key:
            raise UpstreamError(
                "Summarization provider is not configured",
                upstream_message="OPENAI_API_KEY is not set",
            )

        body = {
            "model": self.model,
            "messages": self.build_messages(location, items),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=body,
                    headers=headers,
                )
        except httpx.TimeoutException as exc:
            logger.error("Summarization request timed out after %ss", self.timeout)
            raise UpstreamError(upstream_message=str(exc) or "timed out") from exc
        except httpx.RequestError as exc:
            logger.error("Summarization request failed: %s", exc)
            raise UpstreamError(upstream_message=str(exc)) from exc

        if response.status_code >= 400:
            logger.error("Summarization provider returned %d", response.status_code)
            raise UpstreamError(
                upstream_status=response.status_code,
                upstream_message=response.text[:500],
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise SchemaError("Summarization provider returned an unexpected envelope") from exc

        if not isinstance(content, str):
            raise SchemaError("Summarization provider returned an empty response")

        return parse_snapshot_text(content)
