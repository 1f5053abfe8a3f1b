"""Shared JSON-over-HTTP plumbing for the metadata and tree backends."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import requests

log = logging.getLogger(__name__)

USER_AGENT = "harvester/1.0"


class JsonHttpClient:
    """Issue GET requests and decode JSON, collapsing every failure to ``None``.

    Transport errors, non-2xx responses and undecodable bodies are all treated
    as "record absent": callers only distinguish a parsed payload from nothing.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._owns_session = session is None
        self._session = session or requests.Session()
        if self._owns_session:
            self._session.headers.update({"User-Agent": USER_AGENT})

    @property
    def base_url(self) -> str:
        return self._base_url

    def url_for(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def get_json(self, path: str, params: Mapping[str, Any] | None = None) -> Optional[Any]:
        url = self.url_for(path)
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.RequestException as exc:
            log.debug("GET %s failed: %s", url, exc)
            return None
        if not response.ok:
            log.debug("GET %s returned HTTP %s", url, response.status_code)
            return None
        try:
            return response.json()
        except ValueError as exc:
            log.debug("GET %s returned invalid JSON: %s", url, exc)
            return None

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "JsonHttpClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["JsonHttpClient", "USER_AGENT"]
