"""Shared pytest fixtures for Bloomworks tests.

External services are replaced by the fakes in ``tests/fakes.py``.
"""

from __future__ import annotations

from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from bloomworks.core.errors import ImageSafetyRejection, ImageServiceError
from bloomworks.core.image_acquirer import ImageAcquirer
from bloomworks.core.persistence import PersistenceWriter
from bloomworks.core.pipeline import SubmissionPipeline
from bloomworks.core.prompt_composer import PromptComposer
from bloomworks.core.rate_limiter import RateLimiter
from bloomworks.core.safety_gate import SafetyGate
from bloomworks.core.themes import ThemeRegistry, theme_registry
from tests.fakes import (
    FakeChat,
    FakeImages,
    FakeModeration,
    FakeSupabase,
    Services,
    make_png_b64,
)


# ---------------------------------------------------------------------------
# Fixtures.
# ---------------------------------------------------------------------------


@pytest.fixture
def png_b64() -> str:
    return make_png_b64()


@pytest.fixture
def themes() -> ThemeRegistry:
    """Built-in themes with the default service ceilings applied."""
    return theme_registry.configured(global_ceiling=200, per_identity_ceiling=50, bucket="flowers")


@pytest.fixture
def flower(themes):
    return themes.get("flower")


@pytest.fixture
def fish(themes):
    return themes.get("fish")


@pytest.fixture
def bird(themes):
    return themes.get("bird")


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def make_services(themes, fake_db) -> Callable[..., Services]:
    """Factory building a pipeline from fakes, with per-test overrides."""

    def _make(
        chat: FakeChat | None = None,
        moderation: FakeModeration | None = None,
        images: FakeImages | None = None,
        moderation_enabled: bool = True,
        publisher=None,
    ) -> Services:
        chat = chat or FakeChat()
        moderation = moderation or FakeModeration()
        images = images or FakeImages()
        pipeline = SubmissionPipeline(
            limiter=RateLimiter(fake_db),
            composer=PromptComposer(chat),
            gate=SafetyGate(moderation, enabled=moderation_enabled),
            acquirer=ImageAcquirer(images),
            writer=PersistenceWriter(storage=fake_db, store=fake_db),
            publisher=publisher,
            themes=themes,
        )
        return Services(chat, moderation, images, fake_db, themes, pipeline)

    return _make


@pytest.fixture
def services(make_services) -> Services:
    return make_services()


@pytest.fixture
def make_client() -> Generator[Callable[[Services], TestClient], None, None]:
    """Factory returning a TestClient bound to the given services."""
    from bloomworks.api.main import app

    clients: list[TestClient] = []

    def _make(services: Services) -> TestClient:
        app.state.pipeline = services.pipeline
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
    app.state.pipeline = None


@pytest.fixture
def test_client(services, make_client) -> TestClient:
    """TestClient wired to the default fake-backed pipeline."""
    return make_client(services)


@pytest.fixture
def safety_rejection() -> ImageSafetyRejection:
    return ImageSafetyRejection(
        "Your request was rejected by the safety system.",
        status=400,
        code="moderation_blocked",
    )


@pytest.fixture
def quota_error() -> ImageServiceError:
    return ImageServiceError("You exceeded your current quota.", status=429, code="insufficient_quota")
