"""Thin adapters over the OpenAI and Supabase SDKs.

The pipeline components depend on small protocols (``complete``,
``flagged``, ``generate``, ``count``, ``insert``, ``upload``...) rather than
on the SDKs directly.  The two gateways below implement those protocols
against the real services; tests substitute in-memory fakes.

Safety Classification
---------------------
:meth:`OpenAIGateway.generate` is the only place that interprets image
service errors.  It converts SDK exceptions into
:class:`~bloomworks.core.errors.ImageSafetyRejection` when the service
reports a moderation block (error code ``moderation_blocked``, or a 400
whose message mentions safety or moderation) and into
:class:`~bloomworks.core.errors.ImageServiceError` otherwise.  The retry
policy upstream only ever looks at the exception type.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx
import openai
from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client, create_client

from bloomworks.core.errors import (
    ImageSafetyRejection,
    ImageServiceError,
    UpstreamServiceError,
)
from bloomworks.core.image_acquirer import ImageResult

logger = logging.getLogger(__name__)

_SAFETY_MESSAGE_RE = re.compile(r"safety|moderation", re.IGNORECASE)
SAFETY_ERROR_CODE = "moderation_blocked"


def classify_image_error(exc: openai.APIError) -> ImageServiceError:
    """Map an OpenAI SDK error onto the structured image error types."""
    status = getattr(exc, "status_code", None)
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)

    if code == SAFETY_ERROR_CODE or (status == 400 and _SAFETY_MESSAGE_RE.search(message)):
        return ImageSafetyRejection(message, status=status, code=code)
    return ImageServiceError(message, status=status, code=code)


class OpenAIGateway:
    """Chat completion, moderation and image generation via one SDK client."""

    def __init__(self, client: openai.OpenAI) -> None:
        self._client = client

    @classmethod
    def from_api_key(cls, api_key: str) -> OpenAIGateway:
        return cls(openai.OpenAI(api_key=api_key or None))

    def complete(
        self, *, model: str, messages: list[dict[str, str]], max_tokens: int | None = None
    ) -> str:
        kwargs: dict[str, Any] = {"model": model, "messages": messages}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        response = self._client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""

    def flagged(self, *, model: str, text: str) -> bool:
        response = self._client.moderations.create(model=model, input=text)
        return any(result.flagged for result in response.results)

    def generate(self, *, model: str, prompt: str, size: str, background: str) -> ImageResult:
        try:
            response = self._client.images.generate(
                model=model,
                prompt=prompt,
                size=size,
                background=background,
            )
        except openai.APIError as exc:
            raise classify_image_error(exc) from exc

        if not response.data:
            raise ImageServiceError("Image service returned no data")
        item = response.data[0]
        return ImageResult(b64_json=item.b64_json, revised_prompt=getattr(item, "revised_prompt", None))


class SupabaseGateway:
    """Table counts/inserts and storage uploads via one Supabase client."""

    def __init__(self, client: Client) -> None:
        self._client = client

    @classmethod
    def from_credentials(cls, url: str, key: str) -> SupabaseGateway:
        return cls(create_client(url, key))

    def _count(self, table: str, identity: str | None = None) -> int:
        query = self._client.table(table).select("*", count="exact", head=True)
        if identity is not None:
            query = query.eq("ip", identity)
        try:
            response = query.execute()
        except (PostgrestAPIError, httpx.HTTPError) as exc:
            logger.error("Count query on '%s' failed: %s", table, exc)
            raise UpstreamServiceError(f"Database count failed: {exc}", service="database") from exc
        return response.count or 0

    def count(self, table: str) -> int:
        return self._count(table)

    def count_by_identity(self, table: str, identity: str) -> int:
        return self._count(table, identity)

    def insert(self, table: str, row: dict[str, Any]) -> None:
        self._client.table(table).insert(row).execute()

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        self._client.storage.from_(bucket).upload(
            path=path,
            file=data,
            file_options={"content-type": content_type, "upsert": "false"},
        )

    def public_url(self, bucket: str, path: str) -> str:
        return self._client.storage.from_(bucket).get_public_url(path)
