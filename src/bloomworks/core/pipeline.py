"""The submission pipeline: one message in, one stored image out.

Every request walks the same linear sequence of states::

    Received → Normalized → CapacityChecked → PromptComposed
             → SafetyChecked → ImageAcquired → Persisted
             → Published → Responded

Failures leave the sequence as typed errors from
:mod:`bloomworks.core.errors`:

- ``ValidationError`` from *Normalized* (empty message)
- ``CapacityError`` from *CapacityChecked*
- ``SafetyBlockedError`` / ``ImageGenerationError`` from *ImageAcquired*
- ``UpstreamServiceError`` from *CapacityChecked* or *Persisted*

No step runs concurrently with another, and nothing is written before
*Persisted*.  Prompt-composition and moderation failures never leave the
sequence; they are absorbed by their components.

All external clients are injected.  :func:`build_pipeline` constructs the
real ones from a :class:`~bloomworks.core.config.BloomworksConfig` once per
process.

Usage
-----
::

    from bloomworks.core.config import config
    from bloomworks.core.pipeline import build_pipeline

    pipeline = build_pipeline(config)
    theme = pipeline.themes.get("flower")
    result = pipeline.run("pizza", theme, remote_addr="203.0.113.7")
    print(result.image_url)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from bloomworks.core.config import BloomworksConfig
from bloomworks.core.image_acquirer import ImageAcquirer
from bloomworks.core.persistence import PersistenceWriter, Record
from bloomworks.core.prompt_composer import PromptComposer
from bloomworks.core.publisher import CmsPublisher
from bloomworks.core.rate_limiter import RateLimiter
from bloomworks.core.safety_gate import SafetyGate
from bloomworks.core.submission import build_submission
from bloomworks.core.themes import ThemeConfig, ThemeRegistry, theme_registry

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    RECEIVED = "received"
    NORMALIZED = "normalized"
    CAPACITY_CHECKED = "capacity_checked"
    PROMPT_COMPOSED = "prompt_composed"
    SAFETY_CHECKED = "safety_checked"
    IMAGE_ACQUIRED = "image_acquired"
    PERSISTED = "persisted"
    PUBLISHED = "published"
    RESPONDED = "responded"


@dataclass(frozen=True)
class SubmissionResult:
    image_url: str
    prompt: str
    record: Record
    published_id: str | None = None


class SubmissionPipeline:
    """Runs one submission through every stage in order."""

    def __init__(
        self,
        limiter: RateLimiter,
        composer: PromptComposer,
        gate: SafetyGate,
        acquirer: ImageAcquirer,
        writer: PersistenceWriter,
        publisher: CmsPublisher | None = None,
        themes: ThemeRegistry | None = None,
        resources: list[Any] | None = None,
    ) -> None:
        self.limiter = limiter
        self.composer = composer
        self.gate = gate
        self.acquirer = acquirer
        self.writer = writer
        self.publisher = publisher
        self.themes = themes or theme_registry
        self._resources = resources or []

    def _enter(self, stage: Stage, theme: ThemeConfig) -> None:
        logger.debug("[%s] %s", theme.name, stage.value)

    def run(
        self,
        raw_message: Any,
        theme: ThemeConfig,
        *,
        forwarded_for: str | None = None,
        remote_addr: str | None = None,
    ) -> SubmissionResult:
        """Process one submission for *theme*.

        Args:
            raw_message: The ``message`` field exactly as received.
            theme: Resolved theme configuration.
            forwarded_for: Value of the ``X-Forwarded-For`` header, if any.
            remote_addr: Socket peer address, if known.

        Returns:
            The public image URL, the prompt that produced the image and the
            persisted record.
        """
        self._enter(Stage.RECEIVED, theme)
        submission = build_submission(
            raw_message, theme, forwarded_for=forwarded_for, remote_addr=remote_addr
        )
        self._enter(Stage.NORMALIZED, theme)

        self.limiter.check(theme, submission.identity)
        self._enter(Stage.CAPACITY_CHECKED, theme)

        if self.gate.check_input(submission.message, theme):
            prompt = self.gate.safe_prompt(theme)
        else:
            prompt = self.composer.compose(submission.message, theme)
        self._enter(Stage.PROMPT_COMPOSED, theme)

        prompt = self.gate.check_prompt(prompt, theme)
        self._enter(Stage.SAFETY_CHECKED, theme)

        asset, used_prompt = self.acquirer.acquire(prompt, theme)
        self._enter(Stage.IMAGE_ACQUIRED, theme)

        record = self.writer.persist(submission, asset, used_prompt, theme)
        self._enter(Stage.PERSISTED, theme)

        published_id = None
        if self.publisher is not None:
            published_id = self.publisher.publish_best_effort(record, theme)
            self._enter(Stage.PUBLISHED, theme)

        self._enter(Stage.RESPONDED, theme)
        return SubmissionResult(
            image_url=record.image_url,
            prompt=used_prompt.body,
            record=record,
            published_id=published_id,
        )

    def close(self) -> None:
        """Release clients that hold network resources."""
        for resource in self._resources:
            resource.close()
        self._resources.clear()


def build_pipeline(cfg: BloomworksConfig) -> SubmissionPipeline:
    """Construct the production pipeline from configuration."""
    from bloomworks.core.clients import OpenAIGateway, SupabaseGateway

    ai = OpenAIGateway.from_api_key(cfg.openai_api_key)
    db = SupabaseGateway.from_credentials(cfg.supabase_url, cfg.supabase_service_role_key)

    resources: list[Any] = []
    publisher = None
    if cfg.cms_enabled:
        http_client = httpx.Client(timeout=cfg.cms_timeout)
        resources.append(http_client)
        publisher = CmsPublisher(
            http_client,
            api_token=cfg.cms_api_token,
            collection_id=cfg.cms_collection_id,
            base_url=cfg.cms_base_url,
        )
        logger.info("CMS publishing enabled for collection %s", cfg.cms_collection_id)

    themes = theme_registry.configured(
        global_ceiling=cfg.global_ceiling,
        per_identity_ceiling=cfg.per_identity_ceiling,
        bucket=cfg.supabase_bucket,
    )

    return SubmissionPipeline(
        limiter=RateLimiter(db),
        composer=PromptComposer(ai, model=cfg.chat_model, max_length=cfg.prompt_max_length),
        gate=SafetyGate(ai, model=cfg.moderation_model, enabled=cfg.moderation_enabled),
        acquirer=ImageAcquirer(
            ai, model=cfg.image_model, size=cfg.image_size, background=cfg.image_background
        ),
        writer=PersistenceWriter(storage=db, store=db),
        publisher=publisher,
        themes=themes,
        resources=resources,
    )
