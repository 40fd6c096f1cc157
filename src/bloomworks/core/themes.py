"""Theme definitions and the theme registry.

A *theme* is one flavour of the submission pipeline (flower, fish, bird).
Themes differ only in data: prompt wording, the locked style anchor, the
safe fallback text, where records and images go, and capacity settings.
Everything here is plain configuration consumed by the pipeline components;
no theme carries behaviour of its own.

Style Anchors
-------------
Every prompt sent to the image model must contain the theme's style anchor
verbatim.  Two strategies exist:

- ``"append"`` — the composer always concatenates the anchor after the
  model-written description.
- ``"embedded"`` — the system instruction asks the model to finish its
  sentence with the anchor; the composer appends it only when the model
  forgot.

Usage Example
-------------
    >>> from bloomworks.core.themes import theme_registry
    >>> theme = theme_registry.get("flower")
    >>> theme.route
    'submitAI'
    >>> theme.style_anchor in theme.safe_prompt
    True
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Literal

logger = logging.getLogger(__name__)

ModerationTarget = Literal["input", "prompt"]


@dataclass(frozen=True)
class ThemeConfig:
    """Immutable description of one pipeline theme.

    ``global_ceiling`` and ``per_identity_ceiling`` may be left as ``None``
    in the static definitions below; :meth:`with_ceilings` fills them from
    the service configuration when the pipeline is assembled.  A theme with
    ``capacity_limited=False`` keeps both as ``None``, which disables the
    capacity checks for it.
    """

    name: str
    label: str
    route: str
    subject: str
    table: str
    folder: str
    file_prefix: str
    style_version: int
    system_instruction: str
    style_anchor: str
    fallback_description: str
    safe_description: str
    full_message: str
    per_identity_message: str
    safety_block_message: str
    user_template: str = "{message}"
    anchor_strategy: Literal["append", "embedded"] = "append"
    anchor_separator: str = " "
    max_message_length: int = 500
    max_tokens: int | None = None
    moderation_targets: tuple[ModerationTarget, ...] = ()
    bucket: str | None = None
    global_ceiling: int | None = None
    per_identity_ceiling: int | None = None
    capacity_limited: bool = True

    @property
    def safe_prompt(self) -> str:
        """Fixed prompt used when moderation flags content or the image
        service rejects the primary prompt."""
        return self.attach_anchor(self.safe_description)

    @property
    def fallback_prompt(self) -> str:
        """Prompt used when the language model cannot be reached."""
        return self.attach_anchor(self.fallback_description)

    def attach_anchor(self, description: str) -> str:
        """Return *description* followed by the style anchor."""
        description = description.strip()
        if not description:
            return self.style_anchor
        return f"{description}{self.anchor_separator}{self.style_anchor}"

    def capacity_message(self, limit: int) -> str:
        """Render the per-identity rejection text for the configured limit."""
        return self.per_identity_message.format(limit=limit)

    def with_ceilings(self, global_ceiling: int, per_identity_ceiling: int) -> ThemeConfig:
        """Return a copy with unset ceilings filled from the given defaults.

        Themes that are not capacity limited are returned unchanged.
        """
        if not self.capacity_limited:
            return self
        return dataclasses.replace(
            self,
            global_ceiling=self.global_ceiling if self.global_ceiling is not None else global_ceiling,
            per_identity_ceiling=(
                self.per_identity_ceiling
                if self.per_identity_ceiling is not None
                else per_identity_ceiling
            ),
        )

    def with_bucket(self, bucket: str) -> ThemeConfig:
        """Return a copy whose bucket defaults to *bucket* when unset."""
        if self.bucket:
            return self
        return dataclasses.replace(self, bucket=bucket)


# ---------------------------------------------------------------------------
# Built-in themes.
# ---------------------------------------------------------------------------

_FLOWER_ANCHOR = (
    "Japanese anime realism inspired by Makoto Shinkai, soft yet vibrant lighting, "
    "natural highlights, cinematic shading, smooth gradients, glowing under natural light, "
    "vivid harmonious colors, completely isolated on a pure white background, "
    "square format, high resolution."
)

_BIRD_ANCHOR = (
    "anime realism with dreamy cinematic atmosphere, soft yet vibrant lighting, natural "
    "highlights, atmospheric shading, smooth color blending, delicate gradients, no harsh "
    "outlines, glowing surfaces under natural light, vivid harmonious colors, rich depth, "
    "subtle pastel tones, isolated on a pure white background, square 1:1 format, high "
    "resolution, polished anime realism."
)

_FISH_ANCHOR = (
    "anime realism, soft yet vibrant lighting, natural highlights, atmospheric shading, "
    "smooth gradients, no harsh outlines, luminous feel, harmonious vivid colors, isolated "
    "on pure white, square 1:1, high resolution, polished anime realism."
)

FLOWER = ThemeConfig(
    name="flower",
    label="Garden",
    route="submitAI",
    subject="flower",
    table="blooms",
    folder="",
    file_prefix="bloomAI",
    style_version=2,
    system_instruction=(
        "Describe a single flower, poetic and vivid. Always only one flower, completely "
        "isolated, with no background, no scenery, and no other objects or people. Never "
        "depict the message literally: reinterpret it symbolically through petal shape, "
        "color and texture only. Answer with one or two sentences describing the flower "
        "itself; the illustration style is added separately."
    ),
    user_template='Message: "{message}". Create its flower form.',
    style_anchor=_FLOWER_ANCHOR,
    anchor_strategy="append",
    fallback_description="A single delicate flower with softly glowing petals",
    safe_description="An illustration of a single delicate flower",
    full_message="Garden is full 🌱",
    per_identity_message="🌸 Max {limit} blooms per user",
    safety_block_message="Blocked by safety filter 🌸",
    max_message_length=500,
    moderation_targets=("input", "prompt"),
)

BIRD = ThemeConfig(
    name="bird",
    label="Aviary",
    route="submitBird",
    subject="bird",
    table="bird",
    folder="",
    file_prefix="birdAI",
    style_version=4,
    system_instruction=(
        "You are a Creative AI specializing in Metaphorical Description, tasked with "
        "transforming abstract concepts, feelings, or ideas into vivid, poetic descriptions "
        "suitable for AI Image Generation prompts. Your sole focus is to describe the "
        "concept as a Bird.\n\n"
        "Core Rules:\n"
        "- Always describe the concept as a single, tangible Bird, centered and prominent.\n"
        "- Exclusion of Environment: DO NOT describe sky, trees, nests, or background. "
        "Only the Bird itself.\n"
        "- Style: Concise but richly descriptive, highly visual, and poetic, focusing on "
        "unusual materials, textures, colors, and symbolic feeling.\n"
        "- Symbolic Interpretation: The user's concept must influence feathers, wings, or "
        "body patterns as symbolic colors or textures. NEVER turn into people, other "
        "animals, or objects.\n"
        "- Output Format: One compact English sentence describing only the bird, "
        "immediately followed by the locked style anchor:\n\n" + _BIRD_ANCHOR
    ),
    style_anchor=_BIRD_ANCHOR,
    anchor_strategy="embedded",
    anchor_separator=", ",
    fallback_description="A serene songbird with softly iridescent feathers",
    safe_description="A single gentle songbird with pearl-white feathers and a luminous breast",
    full_message="The aviary is full 🐦",
    per_identity_message="🐦 Max {limit} birds per user",
    safety_block_message="Blocked by safety filter 🐦",
    max_message_length=500,
    moderation_targets=("prompt",),
    bucket="bird",
)

FISH = ThemeConfig(
    name="fish",
    label="Pond",
    route="submitFish",
    subject="fish",
    table="fish",
    folder="fish",
    file_prefix="fish",
    style_version=1,
    system_instruction=(
        "You rewrite any user message into a single-sentence, safe description of ONE "
        "stylized fish.\n"
        "Hard rules: describe only the fish body (no people, no animals, no text, no "
        "objects, no background).\n"
        "Keep the same hero pose: fish oriented left-to-right, slight 3/4 angle, centered.\n"
        "Personalization can affect only color palette, subtle patterns, and surface "
        "texture.\n"
        'At the end of the sentence, append exactly this locked style tag:\n" — '
        + _FISH_ANCHOR
        + '"\n'
        "If the input is unsafe or off-topic, describe a gentle, iridescent koi with "
        "pearly fins and a luminous core, followed by the same style tag."
    ),
    style_anchor=_FISH_ANCHOR,
    anchor_strategy="embedded",
    anchor_separator=" — ",
    fallback_description="A gentle, iridescent koi with pearly fins and a luminous core",
    safe_description="A gentle, iridescent koi with pearly fins and a luminous core",
    full_message="The pond is full 🐟",
    per_identity_message="🐟 Max {limit} fish per user",
    safety_block_message="Blocked by safety filter 🐟",
    max_message_length=500,
    moderation_targets=("input",),
    bucket="garden",
    capacity_limited=False,
)


class ThemeRegistry:
    """Registry of themes by name and by legacy route segment."""

    def __init__(self) -> None:
        self._themes: dict[str, ThemeConfig] = {}

    def register(self, theme: ThemeConfig) -> ThemeConfig:
        """Register *theme*, replacing any theme with the same name."""
        if theme.name in self._themes:
            logger.warning("Replacing registered theme: %s", theme.name)
        self._themes[theme.name] = theme
        logger.debug("Registered theme: %s (route=%s)", theme.name, theme.route)
        return theme

    def get(self, name: str) -> ThemeConfig:
        """Return the theme registered as *name*.

        Raises:
            KeyError: If no theme is registered under *name*.
        """
        if name not in self._themes:
            available = ", ".join(self.list_available())
            raise KeyError(f"Theme '{name}' not found. Available themes: {available}")
        return self._themes[name]

    def by_route(self, route: str) -> ThemeConfig:
        """Return the theme served at ``/api/<route>``."""
        for theme in self._themes.values():
            if theme.route == route:
                return theme
        raise KeyError(f"No theme is served at route '{route}'")

    def list_available(self) -> list[str]:
        return list(self._themes.keys())

    def themes(self) -> list[ThemeConfig]:
        return list(self._themes.values())

    def configured(
        self,
        *,
        global_ceiling: int,
        per_identity_ceiling: int,
        bucket: str,
    ) -> ThemeRegistry:
        """Return a new registry with service-level defaults applied."""
        resolved = ThemeRegistry()
        for theme in self._themes.values():
            resolved.register(
                theme.with_ceilings(global_ceiling, per_identity_ceiling).with_bucket(bucket)
            )
        return resolved

    def describe(self, name: str) -> dict[str, Any]:
        """Public metadata for a theme (no prompt text)."""
        theme = self.get(name)
        return {
            "name": theme.name,
            "label": theme.label,
            "route": f"/api/{theme.route}",
            "subject": theme.subject,
            "style_version": theme.style_version,
            "max_message_length": theme.max_message_length,
            "global_ceiling": theme.global_ceiling,
            "per_identity_ceiling": theme.per_identity_ceiling,
        }


# Global theme registry with the built-in themes.
theme_registry = ThemeRegistry()
for _theme in (FLOWER, FISH, BIRD):
    theme_registry.register(_theme)
