"""Upload generated images and persist one record per successful run.

Upload and insert are two sequential steps with no compensating rollback.
If the public URL lookup or the insert fails after a successful upload, the
stored object is left behind without a record; the orphaned path is logged
at error level.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol

from pydantic import BaseModel, Field

from bloomworks.core.errors import UpstreamServiceError
from bloomworks.core.image_acquirer import GeneratedAsset
from bloomworks.core.prompt_composer import Prompt
from bloomworks.core.submission import Submission
from bloomworks.core.themes import ThemeConfig

logger = logging.getLogger(__name__)


class Record(BaseModel):
    """Row written to a theme's table.  One assignment per column."""

    message: str
    image_url: str
    seed: int = Field(ge=0, le=2**32 - 1)
    style_version: int
    ip: str
    prompt_used: str | None = None


class ObjectStorage(Protocol):
    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None: ...

    def public_url(self, bucket: str, path: str) -> str: ...


class RecordInserter(Protocol):
    def insert(self, table: str, row: dict[str, Any]) -> None: ...


def build_filename(theme: ThemeConfig, seed: int, now_ms: int | None = None) -> str:
    """Object path: ``[folder/]<prefix>_<epoch ms>_<seed>.png``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    name = f"{theme.file_prefix}_{now_ms}_{seed}.png"
    return f"{theme.folder}/{name}" if theme.folder else name


class PersistenceWriter:
    """Stores the image, resolves its public URL and inserts the record."""

    def __init__(self, storage: ObjectStorage, store: RecordInserter) -> None:
        self._storage = storage
        self._store = store

    def persist(
        self,
        submission: Submission,
        asset: GeneratedAsset,
        prompt: Prompt,
        theme: ThemeConfig,
        *,
        now_ms: int | None = None,
    ) -> Record:
        """Upload *asset* and insert its record.

        Raises:
            UpstreamServiceError: Storage or database call failed.
        """
        bucket = theme.bucket or ""
        path = build_filename(theme, submission.seed, now_ms)

        try:
            self._storage.upload(bucket, path, asset.data, asset.content_type)
        except Exception as exc:
            logger.error("Upload of '%s' to bucket '%s' failed: %s", path, bucket, exc)
            raise UpstreamServiceError(f"Storage upload failed: {exc}", service="storage") from exc

        try:
            image_url = self._storage.public_url(bucket, path)
        except Exception as exc:
            logger.error(
                "Public URL lookup failed; stored object '%s/%s' has no record: %s",
                bucket,
                path,
                exc,
            )
            raise UpstreamServiceError(
                f"Public URL lookup failed: {exc}", service="storage"
            ) from exc

        record = Record(
            message=submission.message,
            image_url=image_url,
            seed=submission.seed,
            style_version=theme.style_version,
            ip=submission.identity,
            prompt_used=asset.revised_prompt or prompt.body,
        )

        try:
            self._store.insert(theme.table, record.model_dump())
        except Exception as exc:
            logger.error(
                "Insert into '%s' failed; stored object '%s/%s' has no record: %s",
                theme.table,
                bucket,
                path,
                exc,
            )
            raise UpstreamServiceError(f"Database insert failed: {exc}", service="database") from exc

        logger.info("Stored %s record seed=%d at %s", theme.name, submission.seed, image_url)
        return record
