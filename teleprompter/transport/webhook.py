"""Webhook transport: POST each frame to a display service over HTTP.

WHY: Some display surfaces are driven by a separate service that
accepts frames over HTTP rather than polling the frame buffer.

HOW: display() is called from timer callbacks and request handlers on
the event loop thread, so it never waits on the network. It hands the
frame to a per-session asyncio task that POSTs it with httpx.AsyncClient
as JSON ({"session_id", "text", "duration_ms"}). While a POST is in
flight, newer frames for that session replace each other and only the
latest is sent next. A failed delivery is recorded and raised from the
session's next display() call: connection failures and the "gone"
status codes (404, 410) as TransportClosedError, other HTTP failures as
TransportError.

RULES:
- display() must be called with a running event loop
- At most one POST in flight per session; frames are sent in order
- A slow display service delays only its own session's frames
- close_session() and close() cancel in-flight deliveries
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from teleprompter.config import HTTP_TIMEOUT_S
from teleprompter.transport.base import BaseTransport, TransportClosedError, TransportError

logger = logging.getLogger(__name__)

# Status codes that mean the display service no longer knows the session
_GONE_STATUS_CODES = frozenset({404, 410})


class WebhookTransport(BaseTransport):
    """POSTs frames to ``url`` from background tasks."""

    def __init__(
        self,
        url: str,
        timeout_s: float = HTTP_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._timeout_s = timeout_s
        self._transport = transport
        self._tasks: Dict[str, asyncio.Task] = {}
        self._queued: Dict[str, Dict[str, Any]] = {}
        self._errors: Dict[str, TransportError] = {}

    def display(self, session_id: str, text: str, duration_ms: int) -> None:
        error = self._errors.pop(session_id, None)
        if error is not None:
            raise error

        payload = {
            "session_id": session_id,
            "text": text,
            "duration_ms": duration_ms,
        }
        task = self._tasks.get(session_id)
        if task is not None and not task.done():
            self._queued[session_id] = payload
            return

        self._tasks[session_id] = asyncio.get_running_loop().create_task(
            self._deliver(session_id, payload)
        )

    async def flush(self) -> None:
        """Wait until every in-flight delivery has finished."""
        while self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    def close_session(self, session_id: str) -> None:
        task = self._tasks.pop(session_id, None)
        if task is not None:
            task.cancel()
        self._queued.pop(session_id, None)
        self._errors.pop(session_id, None)

    def close(self) -> None:
        for session_id in list(self._tasks):
            self.close_session(session_id)
        self._queued.clear()
        self._errors.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _deliver(self, session_id: str, payload: Dict[str, Any]) -> None:
        task = asyncio.current_task()
        try:
            while payload is not None:
                await self._post(session_id, payload)
                payload = self._queued.pop(session_id, None)
        except TransportError as exc:
            logger.warning("%s", exc)
            self._errors[session_id] = exc
            self._queued.pop(session_id, None)
        finally:
            if self._tasks.get(session_id) is task:
                del self._tasks[session_id]

    async def _post(self, session_id: str, payload: Dict[str, Any]) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
                resp = await client.post(self._url, json=payload)
        except httpx.TransportError as exc:
            raise TransportClosedError(
                session_id, "Display service unreachable: {}".format(exc)
            ) from exc

        if resp.status_code in _GONE_STATUS_CODES:
            raise TransportClosedError(
                session_id,
                "Display service reports session gone (HTTP {})".format(resp.status_code),
            )
        if resp.status_code >= 400:
            raise TransportError(
                session_id,
                "Display service error {}: {}".format(resp.status_code, resp.text),
            )

        logger.debug("[Session %s]: Frame posted to %s", session_id, self._url)
