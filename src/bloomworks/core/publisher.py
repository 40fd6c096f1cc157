"""Best-effort publishing of records to an external CMS collection.

Publishing happens after the record is persisted.  By then the request has
already succeeded from the user's point of view, so a failed push is
logged as a :class:`PublishWarning` and otherwise ignored.

The request shape follows the Webflow v2 collection-items API::

    POST {base_url}/collections/{collection_id}/items
    Authorization: Bearer <token>

    {"isArchived": false, "isDraft": false, "fieldData": {...}}
"""

from __future__ import annotations

import logging
import re

import httpx

from bloomworks.core.errors import PublishWarning
from bloomworks.core.persistence import Record
from bloomworks.core.themes import ThemeConfig

logger = logging.getLogger(__name__)

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")
_SLUG_MAX_LENGTH = 60


def slugify(message: str, seed: int) -> str:
    """URL-safe item slug: lowercase words joined by hyphens plus the seed."""
    base = _SLUG_STRIP_RE.sub("-", message.lower()).strip("-")[:_SLUG_MAX_LENGTH].strip("-")
    return f"{base}-{seed}" if base else str(seed)


class CmsPublisher:
    """Pushes records into one CMS collection."""

    def __init__(
        self,
        client: httpx.Client,
        api_token: str,
        collection_id: str,
        base_url: str = "https://api.webflow.com/v2",
    ) -> None:
        self._client = client
        self._api_token = api_token
        self._collection_id = collection_id
        self._base_url = base_url.rstrip("/")

    @property
    def items_url(self) -> str:
        return f"{self._base_url}/collections/{self._collection_id}/items"

    def build_payload(self, record: Record, theme: ThemeConfig) -> dict:
        return {
            "isArchived": False,
            "isDraft": False,
            "fieldData": {
                "name": record.message[:_SLUG_MAX_LENGTH],
                "slug": slugify(record.message, record.seed),
                "message": record.message,
                "image-url": record.image_url,
                "seed": record.seed,
                "theme": theme.name,
                "style-version": record.style_version,
            },
        }

    def publish(self, record: Record, theme: ThemeConfig) -> str:
        """Create the collection item and return its id.

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx response.
            ValueError: If the response body is not a JSON object.
        """
        response = self._client.post(
            self.items_url,
            json=self.build_payload(record, theme),
            headers={
                "Authorization": f"Bearer {self._api_token}",
                "accept": "application/json",
            },
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError(f"Unexpected CMS response body: {body!r}")
        return str(body.get("id", ""))

    def publish_best_effort(self, record: Record, theme: ThemeConfig) -> str | None:
        """Like :meth:`publish` but never raises.  Returns ``None`` on failure."""
        try:
            item_id = self.publish(record, theme)
        except Exception as exc:
            warning = PublishWarning(f"CMS publish failed for seed {record.seed}: {exc}")
            logger.warning("%s", warning)
            return None
        logger.info("Published %s record seed=%d as CMS item %s", theme.name, record.seed, item_id)
        return item_id
