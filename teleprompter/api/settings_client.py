"""Settings sources: where per-viewer teleprompter settings come from.

WHY: Viewer settings (line width, speed, line count, custom text, auto
replay) are stored outside this service. On session start they are
pulled once; afterwards changes arrive as pushes. The coordinator only
needs "give me this viewer's raw settings", so the storage mechanism
sits behind a small interface.

HOW: Two implementations share the async fetch() contract:
  InMemorySettingsSource — values pushed over the HTTP API, kept per viewer
  HttpSettingsSource     — GET {base_url}/viewers/{viewer_id}/settings
                           via httpx.AsyncClient, JSON object expected

RULES:
- fetch() returns a plain dict of raw key/value settings
- Every failure is raised as SettingsFetchError; the coordinator falls
  back to the built-in defaults when it sees one
- An unknown viewer is not an error: it has no stored settings ({})
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

import httpx

from teleprompter.config import HTTP_TIMEOUT_S, SETTINGS_API_KEY

logger = logging.getLogger(__name__)


class SettingsFetchError(Exception):
    """Raised when a viewer's settings cannot be read.

    RULES:
    - viewer_id identifies the viewer whose settings failed
    """

    def __init__(self, viewer_id: str, message: str) -> None:
        self.viewer_id = viewer_id
        self.message = message
        super().__init__("Settings fetch failed for viewer {}: {}".format(viewer_id, message))


class SettingsSource(ABC):
    """Abstract base for per-viewer settings storage."""

    @abstractmethod
    async def fetch(self, viewer_id: str) -> Dict[str, Any]:
        """Return the viewer's raw settings.

        Raises:
            SettingsFetchError: The settings could not be read.
        """

    def update(self, viewer_id: str, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Record pushed values; returns the viewer's merged raw settings.

        Sources that cannot store pushes just echo the values back.
        """
        return dict(values)


class InMemorySettingsSource(SettingsSource):
    """Keeps pushed settings per viewer for the lifetime of the process."""

    def __init__(self, initial: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._values: Dict[str, Dict[str, Any]] = {}
        for viewer_id, values in (initial or {}).items():
            self._values[viewer_id] = dict(values)

    async def fetch(self, viewer_id: str) -> Dict[str, Any]:
        return dict(self._values.get(viewer_id, {}))

    def update(self, viewer_id: str, values: Mapping[str, Any]) -> Dict[str, Any]:
        stored = self._values.setdefault(viewer_id, {})
        stored.update(values)
        return dict(stored)


class HttpSettingsSource(InMemorySettingsSource):
    """Reads settings from a remote settings service over HTTP.

    WHY: In production the settings live with the viewer's account in a
    separate service.

    HOW: One GET per fetch with a short timeout. Pushed values are kept
    in memory on top of the fetched ones, so a push that arrives before
    the remote store catches up is not lost.

    RULES:
    - 404 means "no settings stored yet" and returns the pushed values
    - Other non-2xx responses, network errors and non-object JSON raise
      SettingsFetchError
    - api_key (optional) is sent as a Bearer token
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_s: float = HTTP_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__()
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key if api_key is not None else SETTINGS_API_KEY
        self._timeout_s = timeout_s
        self._transport = transport

    async def fetch(self, viewer_id: str) -> Dict[str, Any]:
        headers = {}
        if self._api_key:
            headers["Authorization"] = "Bearer {}".format(self._api_key)

        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout_s,
                transport=self._transport,
            ) as client:
                resp = await client.get("/viewers/{}/settings".format(viewer_id))
        except httpx.HTTPError as exc:
            raise SettingsFetchError(viewer_id, str(exc)) from exc

        pushed = await super().fetch(viewer_id)

        if resp.status_code == 404:
            logger.info("No stored settings for viewer %s", viewer_id)
            return pushed
        if resp.status_code != 200:
            raise SettingsFetchError(
                viewer_id,
                "Settings service error {}: {}".format(resp.status_code, resp.text),
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise SettingsFetchError(viewer_id, "Response is not JSON") from exc

        if not isinstance(data, dict):
            raise SettingsFetchError(viewer_id, "Expected a JSON object, got {}".format(type(data).__name__))

        data.update(pushed)
        return data
