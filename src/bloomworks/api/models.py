"""Pydantic request and response models for the submission API.

Models
------
SubmitRequest
    Payload for every ``POST /api/submit*`` endpoint.
SubmitResponse
    Successful submission result.
ErrorResponse
    Body of every non-2xx response.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SubmitRequest(BaseModel):
    """Request body for the submission endpoints.

    ``message`` is deliberately untyped: absent, numeric or otherwise
    non-string values are accepted here and coerced by the normaliser, which
    is also where the "Message required" rule lives.

    Attributes:
        message: The user's short text message.
    """

    model_config = ConfigDict(extra="ignore")

    message: Any = Field(
        default=None,
        description="Short text message to turn into a themed image.",
    )


class SubmitResponse(BaseModel):
    """Response body for a successful submission.

    Attributes:
        ok: Always ``True``.
        image_url: Public URL of the stored image.
        prompt: The prompt that actually produced the image.
    """

    ok: bool = True
    image_url: str = Field(..., description="Public URL of the generated image.")
    prompt: str = Field(..., description="Prompt sent to the image model.")


class ErrorResponse(BaseModel):
    """Response body for errors.

    Attributes:
        error: User-facing error message.
        details: Extra diagnostic text for server errors.
    """

    error: str
    details: str | None = None
