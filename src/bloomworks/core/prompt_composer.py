"""Language-model prompt composition with a locked style anchor.

The composer asks a chat model to reinterpret a user's message as a single
themed subject (one flower, one fish, one bird) and turns the reply into
the prompt sent to the image model.

Sanitising
----------
Model replies are tidied without changing their content:

1. curly double quotes become straight quotes
2. runs of whitespace (including newlines) collapse to one space
3. quotation marks wrapping the whole reply are removed
4. the description is capped at ``max_length`` characters

Style Anchor
------------
Whatever the model returns, the final prompt ends with the theme's style
anchor exactly once.  If the model already wrote the anchor (the
``"embedded"`` strategy asks it to), the text before the anchor is kept as
the description and the anchor is re-attached after capping, so the cap can
never cut into the anchor.

Failure Handling
----------------
A failed or empty completion is not an error for the request: the theme's
fallback description is used instead and the prompt is marked
``source="fallback"``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Literal, Protocol

from bloomworks.core.themes import ThemeConfig

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_CURLY_QUOTES_RE = re.compile(r"[“”]")
_WRAPPING_QUOTES = "\"'‘’"
_ANCHOR_LEAD_IN = " —–-,;:"


@dataclass(frozen=True)
class Prompt:
    """A prompt ready for the image model."""

    body: str
    style_anchor: str
    source: Literal["generated", "fallback"] = "generated"


class ChatCompleter(Protocol):
    def complete(
        self, *, model: str, messages: list[dict[str, str]], max_tokens: int | None = None
    ) -> str: ...


def _strip_wrapping_quotes(text: str) -> str:
    while len(text) >= 2 and text[0] in _WRAPPING_QUOTES and text[-1] in _WRAPPING_QUOTES:
        text = text[1:-1].strip()
    return text


def sanitize_prompt(text: str, max_length: int | None = 700) -> str:
    """Normalise quotes and whitespace, unwrap quotes, and cap the length."""
    text = _CURLY_QUOTES_RE.sub('"', text or "")
    text = _WHITESPACE_RE.sub(" ", text).strip()
    text = _strip_wrapping_quotes(text)
    if max_length is not None:
        text = text[:max_length].rstrip()
    return text


def split_anchor(text: str, anchor: str) -> str:
    """Return the description part of *text*, dropping an embedded anchor.

    Any separator punctuation between the description and the anchor is
    removed too.  Text without the anchor is returned unchanged.
    """
    index = text.find(anchor)
    if index < 0:
        return text
    head = text[:index].rstrip(_ANCHOR_LEAD_IN)
    # An opening quote around the anchor is left dangling on the head.
    if head.endswith('"') and head.count('"') % 2 == 1:
        head = head[:-1].rstrip(_ANCHOR_LEAD_IN)
    return _strip_wrapping_quotes(head.strip())


def build_messages(message: str, theme: ThemeConfig) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": theme.system_instruction},
        {"role": "user", "content": theme.user_template.format(message=message)},
    ]


class PromptComposer:
    """Rewrites a message into a themed, style-locked image prompt."""

    def __init__(self, llm: ChatCompleter, model: str = "gpt-4o-mini", max_length: int = 700) -> None:
        self._llm = llm
        self._model = model
        self._max_length = max_length

    def compose(self, message: str, theme: ThemeConfig) -> Prompt:
        """Return the image prompt for *message* under *theme*.

        Never raises for language-model failures; see the module docstring.
        """
        try:
            reply = self._llm.complete(
                model=self._model,
                messages=build_messages(message, theme),
                max_tokens=theme.max_tokens,
            )
        except Exception:
            logger.warning(
                "Prompt composition failed for theme '%s'; using fallback description.",
                theme.name,
                exc_info=True,
            )
            return self.fallback(theme)

        reply = reply or ""
        description = split_anchor(sanitize_prompt(reply, max_length=None), theme.style_anchor)
        description = sanitize_prompt(description, self._max_length)
        if not description:
            logger.warning("Empty completion for theme '%s'; using fallback.", theme.name)
            return self.fallback(theme)

        if theme.anchor_strategy == "embedded" and theme.style_anchor not in reply:
            logger.debug("Model omitted the style anchor for theme '%s'.", theme.name)

        return Prompt(
            body=theme.attach_anchor(description),
            style_anchor=theme.style_anchor,
            source="generated",
        )

    @staticmethod
    def fallback(theme: ThemeConfig) -> Prompt:
        return Prompt(body=theme.fallback_prompt, style_anchor=theme.style_anchor, source="fallback")
