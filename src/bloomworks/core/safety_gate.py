"""Optional moderation screening of user input and composed prompts.

The gate fails open: if the moderation service errors, the text is treated
as not flagged and the request continues.  Flagged content is never passed
on; the theme's fixed safe prompt replaces it.
"""

from __future__ import annotations

import logging
from typing import Protocol

from bloomworks.core.prompt_composer import Prompt
from bloomworks.core.themes import ThemeConfig

logger = logging.getLogger(__name__)


class ModerationClassifier(Protocol):
    def flagged(self, *, model: str, text: str) -> bool: ...


class SafetyGate:
    """Screens text through a moderation classifier."""

    def __init__(
        self,
        moderation: ModerationClassifier | None,
        model: str = "omni-moderation-latest",
        enabled: bool = True,
    ) -> None:
        self._moderation = moderation
        self._model = model
        self.enabled = enabled and moderation is not None

    def is_flagged(self, text: str) -> bool:
        """True if the classifier flags *text*.  Errors count as not flagged."""
        if not self.enabled or not text:
            return False
        try:
            return bool(self._moderation.flagged(model=self._model, text=text))
        except Exception:
            logger.warning("Moderation check failed; continuing unscreened.", exc_info=True)
            return False

    def screens(self, theme: ThemeConfig, target: str) -> bool:
        return self.enabled and target in theme.moderation_targets

    def safe_prompt(self, theme: ThemeConfig) -> Prompt:
        return Prompt(body=theme.safe_prompt, style_anchor=theme.style_anchor, source="fallback")

    def check_input(self, message: str, theme: ThemeConfig) -> bool:
        """Screen the raw user message if the theme asks for it."""
        if not self.screens(theme, "input"):
            return False
        flagged = self.is_flagged(message)
        if flagged:
            logger.info("User input flagged by moderation for theme '%s'.", theme.name)
        return flagged

    def check_prompt(self, prompt: Prompt, theme: ThemeConfig) -> Prompt:
        """Return *prompt*, or the theme's safe prompt if it is flagged."""
        if prompt.source == "fallback" or not self.screens(theme, "prompt"):
            return prompt
        if self.is_flagged(prompt.body):
            logger.info("Composed prompt flagged by moderation for theme '%s'.", theme.name)
            return self.safe_prompt(theme)
        return prompt
