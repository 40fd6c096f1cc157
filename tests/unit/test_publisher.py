"""Tests for bloomworks.core.publisher — CMS collection push."""

from __future__ import annotations

import json

import httpx
import pytest

from bloomworks.core.persistence import Record
from bloomworks.core.publisher import CmsPublisher, slugify


@pytest.fixture
def record():
    return Record(
        message="Pizza on a Friday!",
        image_url="https://example.supabase.co/storage/v1/object/public/flowers/bloomAI_1_2.png",
        seed=2,
        style_version=2,
        ip="203.0.113.7",
    )


def _publisher(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return CmsPublisher(client, api_token="token-123", collection_id="col-9", base_url="https://cms.test/v2/")


class TestSlugify:
    """Test slugify()."""

    def test_basic(self):
        assert slugify("Pizza on a Friday!", 2) == "pizza-on-a-friday-2"

    def test_no_ascii_words(self):
        assert slugify("🌸🌸", 99) == "99"

    def test_long_message_truncated(self):
        slug = slugify("a" * 200, 5)
        assert slug == "a" * 60 + "-5"


class TestPublish:
    """Test CmsPublisher.publish()."""

    def test_request_shape(self, record, flower):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(202, json={"id": "item-1"})

        assert _publisher(handler).publish(record, flower) == "item-1"
        assert seen["url"] == "https://cms.test/v2/collections/col-9/items"
        assert seen["auth"] == "Bearer token-123"
        assert seen["body"]["isDraft"] is False
        fields = seen["body"]["fieldData"]
        assert fields["slug"] == "pizza-on-a-friday-2"
        assert fields["image-url"] == record.image_url
        assert fields["theme"] == "flower"
        assert fields["style-version"] == 2

    def test_error_status_raises(self, record, flower):
        publisher = _publisher(lambda request: httpx.Response(401, json={"message": "Unauthorized"}))
        with pytest.raises(httpx.HTTPStatusError):
            publisher.publish(record, flower)


class TestPublishBestEffort:
    """Failures are logged and swallowed."""

    def test_success_returns_id(self, record, bird):
        publisher = _publisher(lambda request: httpx.Response(200, json={"id": "item-7"}))
        assert publisher.publish_best_effort(record, bird) == "item-7"

    def test_http_error_returns_none(self, record, flower, caplog):
        publisher = _publisher(lambda request: httpx.Response(500, text="boom"))
        assert publisher.publish_best_effort(record, flower) is None
        assert "CMS publish failed" in caplog.text

    def test_transport_error_returns_none(self, record, flower):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert _publisher(handler).publish_best_effort(record, flower) is None

    def test_non_json_body_returns_none(self, record, flower):
        publisher = _publisher(lambda request: httpx.Response(200, text="<html>"))
        assert publisher.publish_best_effort(record, flower) is None

    @pytest.mark.parametrize("body", ["ok", ["item-1"], 42])
    def test_non_object_json_rejected(self, record, flower, body):
        """A 2xx reply whose JSON is not an object is a publish failure."""
        publisher = _publisher(lambda request: httpx.Response(200, json=body))
        with pytest.raises(ValueError):
            publisher.publish(record, flower)
        assert publisher.publish_best_effort(record, flower) is None

    def test_unexpected_error_returns_none(self, record, flower, caplog):
        def handler(request):
            raise RuntimeError("proxy exploded")

        assert _publisher(handler).publish_best_effort(record, flower) is None
        assert "proxy exploded" in caplog.text
