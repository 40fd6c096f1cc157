"""Image acquisition with a single safety-triggered retry.

Retry Policy
------------
The image client reports failures as typed errors (see
:mod:`bloomworks.core.errors`):

- :class:`ImageSafetyRejection` — the service refused the prompt on safety
  grounds.  The request is retried exactly once with the theme's fixed safe
  prompt.  If that retry fails as well, the caller gets
  :class:`SafetyBlockedError`.
- any other :class:`ImageServiceError` — quota, malformed request, outage.
  Surfaced immediately as :class:`ImageGenerationError`, never retried and
  never disguised as a safety block.

Decoding
--------
The service returns base64 image data.  The decoded bytes are opened with
Pillow to confirm they are an image; anything that is not already a PNG is
re-encoded so the stored object always matches its ``image/png`` content
type.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from bloomworks.core.errors import (
    ImageGenerationError,
    ImageSafetyRejection,
    ImageServiceError,
    SafetyBlockedError,
)
from bloomworks.core.prompt_composer import Prompt
from bloomworks.core.themes import ThemeConfig

logger = logging.getLogger(__name__)

PNG_CONTENT_TYPE = "image/png"


@dataclass(frozen=True)
class ImageResult:
    """Raw payload returned by the image client."""

    b64_json: str | None
    revised_prompt: str | None = None


@dataclass(frozen=True)
class GeneratedAsset:
    """Decoded image bytes ready for upload."""

    data: bytes
    width: int
    height: int
    content_type: str = PNG_CONTENT_TYPE
    revised_prompt: str | None = None


class ImageGenerator(Protocol):
    def generate(self, *, model: str, prompt: str, size: str, background: str) -> ImageResult: ...


def decode_image(result: ImageResult) -> GeneratedAsset:
    """Decode a base64 payload into PNG bytes.

    Raises:
        ImageGenerationError: If the payload is missing or is not an image.
    """
    if not result.b64_json:
        raise ImageGenerationError()
    try:
        raw = base64.b64decode(result.b64_json, validate=True)
        with Image.open(io.BytesIO(raw)) as img:
            img.load()
            width, height = img.size
            if img.format != "PNG":
                buffer = io.BytesIO()
                img.save(buffer, format="PNG")
                raw = buffer.getvalue()
    except (binascii.Error, ValueError, UnidentifiedImageError, OSError) as exc:
        logger.error("Image payload could not be decoded: %s", exc)
        raise ImageGenerationError() from exc

    return GeneratedAsset(
        data=raw,
        width=width,
        height=height,
        revised_prompt=result.revised_prompt,
    )


class ImageAcquirer:
    """Requests an image for a prompt, retrying once on safety rejections."""

    def __init__(
        self,
        images: ImageGenerator,
        model: str = "gpt-image-1",
        size: str = "1024x1024",
        background: str = "transparent",
    ) -> None:
        self._images = images
        self._model = model
        self._size = size
        self._background = background

    def _request(self, prompt: str) -> ImageResult:
        return self._images.generate(
            model=self._model,
            prompt=prompt,
            size=self._size,
            background=self._background,
        )

    def acquire(self, prompt: Prompt, theme: ThemeConfig) -> tuple[GeneratedAsset, Prompt]:
        """Generate an image for *prompt*.

        Returns:
            The decoded asset and the prompt that actually produced it (the
            theme's safe prompt when the retry path was taken).

        Raises:
            SafetyBlockedError: Primary and fallback requests were both
                rejected.
            ImageGenerationError: The service failed for a non-safety reason.
        """
        try:
            result = self._request(prompt.body)
        except ImageSafetyRejection as exc:
            logger.warning(
                "Image request rejected by safety system for theme '%s' (code=%s); "
                "retrying with safe prompt.",
                theme.name,
                exc.code,
            )
            prompt = Prompt(body=theme.safe_prompt, style_anchor=theme.style_anchor, source="fallback")
            try:
                result = self._request(prompt.body)
            except ImageServiceError as retry_exc:
                logger.error("Safe-prompt retry failed for theme '%s': %s", theme.name, retry_exc)
                raise SafetyBlockedError(theme.safety_block_message) from retry_exc
        except ImageServiceError as exc:
            logger.error(
                "Images API error for theme '%s' (status=%s, code=%s): %s",
                theme.name,
                exc.status,
                exc.code,
                exc,
            )
            raise ImageGenerationError() from exc

        return decode_image(result), prompt
