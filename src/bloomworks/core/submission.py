"""Input normalisation for incoming submissions.

The normaliser is deliberately forgiving about *what* it receives (absent,
numeric, or otherwise non-string bodies are coerced to text) and strict
about the result: an empty message is rejected before any external call is
made.  No profanity filtering happens here; content screening is the job of
:mod:`bloomworks.core.safety_gate`.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any

from bloomworks.core.errors import ValidationError
from bloomworks.core.themes import ThemeConfig

MESSAGE_REQUIRED = "Message required"


@dataclass(frozen=True)
class Submission:
    """One normalised request.  Never persisted on its own."""

    raw_message: Any
    message: str
    identity: str
    seed: int


def normalize_message(raw: Any, max_length: int) -> str:
    """Trim *raw* and cap it at *max_length* characters.

    Args:
        raw: The ``message`` value from the request body, of any type.
        max_length: Theme-specific cap.

    Returns:
        The trimmed, truncated message.

    Raises:
        ValidationError: If nothing is left after trimming.
    """
    text = "" if raw is None else str(raw)
    clean = text.strip()[:max_length]
    if not clean:
        raise ValidationError(MESSAGE_REQUIRED)
    return clean


def derive_seed(message: str) -> int:
    """Deterministic 32-bit seed: first four bytes of SHA-256, big-endian."""
    digest = hashlib.sha256(message.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big")


def resolve_identity(forwarded_for: str | None, remote_addr: str | None) -> str:
    """Submitter identity from the first ``X-Forwarded-For`` hop.

    Falls back to the socket peer address, then to an empty string.
    """
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return remote_addr or ""


def build_submission(
    raw: Any,
    theme: ThemeConfig,
    *,
    forwarded_for: str | None = None,
    remote_addr: str | None = None,
) -> Submission:
    """Normalise *raw* for *theme* and attach identity and seed."""
    message = normalize_message(raw, theme.max_message_length)
    return Submission(
        raw_message=raw,
        message=message,
        identity=resolve_identity(forwarded_for, remote_addr),
        seed=derive_seed(message),
    )
