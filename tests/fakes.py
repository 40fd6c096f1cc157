"""In-memory fakes for every external collaborator of the pipeline.

Each fake records its calls so tests can assert both on results and on
which services were touched.
"""

from __future__ import annotations

import base64
import io
from typing import Any

from PIL import Image

from bloomworks.core.image_acquirer import ImageResult

PUBLIC_URL_ROOT = "https://example.supabase.co/storage/v1/object/public"


def make_png_b64(size: tuple[int, int] = (8, 8)) -> str:
    """Return a tiny transparent PNG encoded as base64."""
    buffer = io.BytesIO()
    Image.new("RGBA", size, (255, 255, 255, 0)).save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


# ---------------------------------------------------------------------------
# Fakes.
# ---------------------------------------------------------------------------


class FakeChat:
    """Chat completer returning a fixed reply (or raising)."""

    def __init__(self, reply: str = "A tender peach blossom with crust-gold petals", error=None):
        self.reply = reply
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def complete(self, *, model, messages, max_tokens=None):
        self.calls.append({"model": model, "messages": messages, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.reply


class FakeModeration:
    """Flags any text containing one of ``flag_words``."""

    def __init__(self, flag_words: tuple[str, ...] = (), error=None):
        self.flag_words = flag_words
        self.error = error
        self.calls: list[str] = []

    def flagged(self, *, model, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return any(word in text for word in self.flag_words)


class FakeImages:
    """Image generator replaying a scripted list of outcomes.

    Each outcome is either an :class:`ImageResult` or an exception to raise.
    When the script runs out, a default PNG result is returned.
    """

    def __init__(self, outcomes: list[Any] | None = None, revised_prompt: str | None = None):
        self.outcomes = list(outcomes or [])
        self.revised_prompt = revised_prompt
        self.prompts: list[str] = []
        self.calls: list[dict[str, Any]] = []

    def generate(self, *, model, prompt, size, background):
        self.prompts.append(prompt)
        self.calls.append({"model": model, "prompt": prompt, "size": size, "background": background})
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return ImageResult(b64_json=make_png_b64(), revised_prompt=self.revised_prompt)


class FakeSupabase:
    """In-memory tables and storage buckets."""

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self.count_calls = 0
        self.fail_upload: Exception | None = None
        self.fail_insert: Exception | None = None
        self.fail_public_url: Exception | None = None

    def seed_rows(self, table: str, n: int, ip: str = "198.51.100.1") -> None:
        rows = self.tables.setdefault(table, [])
        rows.extend({"message": f"m{i}", "ip": ip} for i in range(n))

    def count(self, table):
        self.count_calls += 1
        return len(self.tables.get(table, []))

    def count_by_identity(self, table, identity):
        self.count_calls += 1
        return sum(1 for row in self.tables.get(table, []) if row.get("ip") == identity)

    def insert(self, table, row):
        if self.fail_insert is not None:
            raise self.fail_insert
        self.tables.setdefault(table, []).append(dict(row))

    def upload(self, bucket, path, data, content_type):
        if self.fail_upload is not None:
            raise self.fail_upload
        self.objects[(bucket, path)] = (data, content_type)

    def public_url(self, bucket, path):
        if self.fail_public_url is not None:
            raise self.fail_public_url
        return f"{PUBLIC_URL_ROOT}/{bucket}/{path}"


class Services:
    """Bundle of fakes plus the pipeline built from them."""

    def __init__(self, chat, moderation, images, db, themes, pipeline):
        self.chat = chat
        self.moderation = moderation
        self.images = images
        self.db = db
        self.themes = themes
        self.pipeline = pipeline

    @property
    def external_calls(self) -> int:
        """Calls made to anything other than the table counters."""
        return (
            len(self.chat.calls)
            + len(self.moderation.calls)
            + len(self.images.calls)
            + len(self.db.objects)
            + sum(len(rows) for rows in self.db.tables.values())
        )

