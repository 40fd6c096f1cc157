"""Bloomworks — FastAPI Application.

This module defines the FastAPI ``app`` instance, the submission routes and
the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Pipeline** — a single :class:`~bloomworks.core.pipeline.SubmissionPipeline`
  is built in the lifespan hook and stored on ``app.state.pipeline``.  If
  something (typically a test) has already put a pipeline there, it is used
  as-is and not closed on shutdown.
- **Errors** — pipeline errors carry their own status codes; one exception
  handler turns them into ``{"error": ...}`` bodies.  Anything unexpected
  becomes a 500 with ``details``.
- **CORS** — every response allows any origin; bare ``OPTIONS`` requests on
  the submission routes answer 200 with the preflight headers.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
POST      ``/api/submitAI``             Flower submission
POST      ``/api/submitFish``           Fish submission
POST      ``/api/submitBird``           Bird submission
POST      ``/api/submit/{theme}``       Submission for any registered theme
OPTIONS   each submission path          CORS preflight
GET       ``/api/themes``               Registered themes and ceilings
GET       ``/api/health``               Liveness and version
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    bloomworks

Direct invocation::

    python -m bloomworks.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from bloomworks import __version__
from bloomworks.api.models import ErrorResponse, SubmitRequest, SubmitResponse
from bloomworks.core.config import config
from bloomworks.core.errors import (
    BloomworksError,
    ImageGenerationError,
    UnknownThemeError,
    UpstreamServiceError,
)
from bloomworks.core.pipeline import SubmissionPipeline, build_pipeline
from bloomworks.core.themes import ThemeConfig, theme_registry

logger = logging.getLogger(__name__)

SUBMIT_PREFIX = "/api/submit"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


# ---------------------------------------------------------------------------
# Application lifecycle.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the pipeline on startup and release its clients on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    owned = getattr(app.state, "pipeline", None) is None
    if owned:
        app.state.pipeline = build_pipeline(config)
        themes = ", ".join(app.state.pipeline.themes.list_available())
        logger.info("Submission pipeline initialised (themes: %s).", themes)

    yield

    if owned:
        app.state.pipeline.close()
        app.state.pipeline = None
        logger.info("Submission pipeline closed on shutdown.")


app = FastAPI(
    title="Bloomworks",
    description="Turns short messages into themed generated images.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS", "GET"],
    allow_headers=["Content-Type"],
)


# ---------------------------------------------------------------------------
# Error handling.
# ---------------------------------------------------------------------------


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body, headers=CORS_HEADERS)


@app.exception_handler(BloomworksError)
async def handle_pipeline_error(request: Request, exc: BloomworksError) -> JSONResponse:
    """Render a pipeline error using its own status code and message."""
    if isinstance(exc, ImageGenerationError):
        return _error(exc.status_code, exc.message)
    if isinstance(exc, UpstreamServiceError):
        logger.error("Upstream failure (%s) on %s: %s", exc.service, request.url.path, exc.message)
        return _error(exc.status_code, "Server error", exc.message)
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Keep the ``{"error": ...}`` body shape for routing errors too."""
    if exc.status_code == 405 and request.url.path.startswith(SUBMIT_PREFIX):
        return _error(405, "Use POST")
    return _error(exc.status_code, str(exc.detail))


# ---------------------------------------------------------------------------
# Submission handling.
# ---------------------------------------------------------------------------


async def _read_payload(request: Request) -> SubmitRequest:
    """Parse the JSON body, treating a missing or malformed body as ``{}``."""
    try:
        data = await request.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    return SubmitRequest.model_validate(data)


async def _submit(request: Request, theme: ThemeConfig) -> JSONResponse:
    """Run the pipeline for *theme* and render the result."""
    pipeline: SubmissionPipeline = request.app.state.pipeline
    payload = await _read_payload(request)

    try:
        result = await run_in_threadpool(
            pipeline.run,
            payload.message,
            theme,
            forwarded_for=request.headers.get("x-forwarded-for"),
            remote_addr=request.client.host if request.client else None,
        )
    except BloomworksError:
        raise
    except Exception as exc:
        logger.exception("Unhandled error while processing %s submission", theme.name)
        return _error(500, "Server error", str(exc))

    body = SubmitResponse(image_url=result.image_url, prompt=result.prompt)
    return JSONResponse(content=body.model_dump(), headers=CORS_HEADERS)


def _resolve_theme(request: Request, name: str) -> ThemeConfig:
    try:
        return request.app.state.pipeline.themes.get(name)
    except KeyError as exc:
        raise UnknownThemeError(f"Unknown theme: {name}") from exc


def _preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


def _register_theme_routes(theme: ThemeConfig) -> None:
    """Add ``POST`` and ``OPTIONS`` routes for a theme's legacy path."""
    path = f"/api/{theme.route}"
    name = theme.name

    async def submit(request: Request) -> JSONResponse:
        return await _submit(request, _resolve_theme(request, name))

    async def preflight() -> Response:
        return _preflight()

    app.add_api_route(
        path,
        submit,
        methods=["POST"],
        name=f"submit_{name}",
        response_model=SubmitResponse,
        responses={
            400: {"model": ErrorResponse},
            403: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    app.add_api_route(path, preflight, methods=["OPTIONS"], include_in_schema=False)


for _theme in theme_registry.themes():
    _register_theme_routes(_theme)


@app.post("/api/submit/{theme_name}", response_model=SubmitResponse)
async def submit_theme(theme_name: str, request: Request) -> JSONResponse:
    """Submit a message to any registered theme by name."""
    return await _submit(request, _resolve_theme(request, theme_name))


@app.options("/api/submit/{theme_name}", include_in_schema=False)
async def submit_theme_preflight(theme_name: str) -> Response:
    return _preflight()


# ---------------------------------------------------------------------------
# Informational routes.
# ---------------------------------------------------------------------------


@app.get("/api/themes")
async def list_themes(request: Request) -> dict:
    """Return public metadata for every registered theme.

    Returns:
        Dictionary with a ``themes`` list; each entry holds the theme name,
        label, route, subject, style version, message cap and ceilings.
    """
    registry = request.app.state.pipeline.themes
    return {"themes": [registry.describe(name) for name in registry.list_available()]}


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok", "version": __version__}


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~bloomworks.core.config.config`
    (``BLOOMWORKS_SERVER_HOST``, ``BLOOMWORKS_SERVER_PORT``,
    ``BLOOMWORKS_LOG_LEVEL``).  Registered as the ``bloomworks`` console
    script in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "bloomworks.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
