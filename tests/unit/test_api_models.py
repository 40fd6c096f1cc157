"""Tests for bloomworks.api.models — Pydantic request/response models.

Tests cover:
- SubmitRequest accepting any message type and ignoring extra keys.
- SubmitResponse defaults and required fields.
- ErrorResponse serialisation without empty details.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from bloomworks.api.models import ErrorResponse, SubmitRequest, SubmitResponse


class TestSubmitRequest:
    """Test SubmitRequest Pydantic model."""

    def test_message_string(self):
        assert SubmitRequest(message="pizza").message == "pizza"

    def test_message_absent(self):
        """An empty body validates; the normaliser rejects it later."""
        assert SubmitRequest.model_validate({}).message is None

    def test_message_non_string_kept(self):
        """Numbers are passed through untouched for the normaliser to coerce."""
        assert SubmitRequest.model_validate({"message": 42}).message == 42

    def test_extra_fields_ignored(self):
        req = SubmitRequest.model_validate({"message": "hi", "theme": "fish"})
        assert not hasattr(req, "theme")


class TestSubmitResponse:
    """Test SubmitResponse Pydantic model."""

    def test_ok_defaults_true(self):
        resp = SubmitResponse(image_url="https://x/y.png", prompt="p")
        assert resp.model_dump() == {"ok": True, "image_url": "https://x/y.png", "prompt": "p"}

    def test_image_url_required(self):
        with pytest.raises(ValidationError):
            SubmitResponse(prompt="p")


class TestErrorResponse:
    """Test ErrorResponse Pydantic model."""

    def test_details_omitted_when_none(self):
        body = ErrorResponse(error="Message required").model_dump(exclude_none=True)
        assert body == {"error": "Message required"}

    def test_details_included(self):
        body = ErrorResponse(error="Server error", details="boom").model_dump(exclude_none=True)
        assert body == {"error": "Server error", "details": "boom"}
