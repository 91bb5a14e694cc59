"""FastAPI application: session lifecycle, settings pushes, and frames.

WHY: The session platform notifies this service over HTTP when a
viewer's display session opens or closes and when the viewer changes
settings. Display surfaces without a webhook poll their latest frame.
FastAPI gives request validation and OpenAPI docs for all of it.

HOW: A module-level TeleprompterCoordinator (like the job store it is a
singleton created at import) runs on the server's event loop through
AsyncioScheduler, so timer callbacks and request handlers never run
concurrently. Frames go to a FrameBufferTransport, optionally forwarded
to DISPLAY_WEBHOOK_URL. Settings come from SETTINGS_BASE_URL when set,
otherwise from values pushed to this API.

RULES:
- All endpoints are async (they must run on the event loop thread)
- Viewer identity is explicit on every lifecycle call
- Unknown sessions/viewers → 404 with the ErrorResponse schema
- Shutdown stops every session and closes the transport
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import FastAPI, HTTPException, Query

from teleprompter import __version__
from teleprompter.api.settings_client import HttpSettingsSource, InMemorySettingsSource, SettingsSource
from teleprompter.config import DISPLAY_WEBHOOK_URL, HOST, PACKAGE_NAME, PORT, SETTINGS_BASE_URL
from teleprompter.server.models import (
    ErrorResponse,
    FrameResponse,
    HealthResponse,
    SessionResponse,
    SessionStartRequest,
    SessionStopResponse,
    SettingsUpdateRequest,
    SettingsUpdateResponse,
    ViewerStateResponse,
)
from teleprompter.session.coordinator import TeleprompterCoordinator
from teleprompter.session.scheduler import AsyncioScheduler
from teleprompter.session.store import ViewerSession
from teleprompter.transport.frame_buffer import FrameBufferTransport
from teleprompter.transport.webhook import WebhookTransport

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and coordinator setup
# ---------------------------------------------------------------------------


def _build_settings_source() -> SettingsSource:
    if SETTINGS_BASE_URL:
        logger.info("Reading viewer settings from %s", SETTINGS_BASE_URL)
        return HttpSettingsSource(SETTINGS_BASE_URL)
    return InMemorySettingsSource()


def _build_frame_buffer() -> FrameBufferTransport:
    if DISPLAY_WEBHOOK_URL:
        logger.info("Forwarding frames to %s", DISPLAY_WEBHOOK_URL)
        return FrameBufferTransport(forward=WebhookTransport(DISPLAY_WEBHOOK_URL))
    return FrameBufferTransport()


frame_buffer = _build_frame_buffer()
coordinator = TeleprompterCoordinator(
    scheduler=AsyncioScheduler(),
    transport=frame_buffer,
    settings_source=_build_settings_source(),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Stop every session on shutdown."""
    yield
    coordinator.shutdown()


app = FastAPI(
    lifespan=lifespan,
    title="Teleprompter API",
    description=(
        "Session lifecycle and settings API for the teleprompter. Notify the "
        "service when a viewer's display session starts or stops, push "
        "settings changes, and poll the latest frame for a session."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _session_to_response(session: ViewerSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        viewer_id=session.viewer_id,
        live=session.live,
        running=coordinator.loop.is_running(session),
    )


def _viewer_state_or_none(viewer_id: str):
    state = coordinator.viewer_state(viewer_id)
    return ViewerStateResponse(**state) if state is not None else None


# ---------------------------------------------------------------------------
# Endpoints: Sessions
# ---------------------------------------------------------------------------


@app.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=201,
    tags=["sessions"],
    summary="Start a display session",
    description=(
        "Lifecycle notification that a viewer opened a display session. "
        "Loads the viewer's settings (defaults on failure), shows the first "
        "frame immediately and starts scrolling after the startup delay."
    ),
)
async def start_session(body: SessionStartRequest) -> SessionResponse:
    session = await coordinator.on_session_start(body.session_id, body.viewer_id)
    return _session_to_response(session)


@app.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    tags=["sessions"],
    summary="Get a display session",
    description="Returns the session's viewer, liveness and whether it is scrolling.",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def get_session(session_id: str) -> SessionResponse:
    session = coordinator.store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session '{}' not found".format(session_id))
    return _session_to_response(session)


@app.delete(
    "/sessions/{session_id}",
    response_model=SessionStopResponse,
    tags=["sessions"],
    summary="Stop a display session",
    description=(
        "Lifecycle notification that a display session closed. Cancels every "
        "timer of the session; the viewer's teleprompter is discarded when "
        "this was the viewer's last session."
    ),
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def stop_session(
    session_id: str,
    viewer_id: Annotated[str, Query(description="Viewer who owns the session.")],
    reason: Annotated[str, Query(description="Why the session stopped.")] = "",
) -> SessionStopResponse:
    if not coordinator.on_session_stop(session_id, viewer_id, reason):
        raise HTTPException(status_code=404, detail="Session '{}' not found".format(session_id))
    return SessionStopResponse(session_id=session_id, stopped=True)


@app.get(
    "/sessions/{session_id}/frame",
    response_model=FrameResponse,
    tags=["sessions"],
    summary="Get the latest frame",
    description="The last frame pushed to the session's display.",
    responses={404: {"model": ErrorResponse, "description": "No frame for this session"}},
)
async def get_frame(session_id: str) -> FrameResponse:
    frame = frame_buffer.get_frame(session_id)
    if frame is None:
        raise HTTPException(status_code=404, detail="No frame for session '{}'".format(session_id))
    return FrameResponse(
        session_id=session_id,
        text=frame.text,
        duration_ms=frame.duration_ms,
        shown_at=frame.shown_at,
    )


# ---------------------------------------------------------------------------
# Endpoints: Viewers
# ---------------------------------------------------------------------------


@app.put(
    "/viewers/{viewer_id}/settings",
    response_model=SettingsUpdateResponse,
    tags=["viewers"],
    summary="Push a settings change",
    description=(
        "Apply changed settings to the viewer's teleprompter. Width, line "
        "count and speed apply in place; a new text restarts from the top. "
        "Settings for viewers without an open session are kept for later."
    ),
)
async def update_settings(viewer_id: str, body: SettingsUpdateRequest) -> SettingsUpdateResponse:
    values = body.model_dump(exclude_none=True)
    change = coordinator.on_settings_change(viewer_id, values)
    return SettingsUpdateResponse(
        viewer_id=viewer_id,
        applied=change is not None,
        text_changed=bool(change and change.text_changed),
        state=_viewer_state_or_none(viewer_id) if change is not None else None,
    )


@app.get(
    "/viewers/{viewer_id}/state",
    response_model=ViewerStateResponse,
    tags=["viewers"],
    summary="Get a viewer's teleprompter state",
    description="Position, progress, phase and pacing of the viewer's teleprompter.",
    responses={404: {"model": ErrorResponse, "description": "Viewer has no active teleprompter"}},
)
async def get_viewer_state(viewer_id: str) -> ViewerStateResponse:
    state = _viewer_state_or_none(viewer_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Viewer '{}' has no active teleprompter".format(viewer_id))
    return state


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness and readiness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", app=PACKAGE_NAME, version=__version__)


def run_api(host: str = HOST, port: int = PORT) -> None:
    """Entry point for the teleprompter-api console script."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)
