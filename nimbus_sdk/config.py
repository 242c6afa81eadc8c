# NimbusFlags/nimbus_sdk/config.py
"""Configuration surface of the NimbusFlags server SDK.

A :class:`Config` can be built directly or from environment variables
(``.env`` files are honoured through python-dotenv). Endpoint URLs that are
not given explicitly are derived from ``remote_url``.
"""


from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv

from .errors.exceptions import UrlError


logger = logging.getLogger(__name__)

SDK_VERSION = "1.1.0"
USER_AGENT = f"Python/{SDK_VERSION}"

DEFAULT_REMOTE_URL = "http://127.0.0.1:8080"
DEFAULT_REFRESH_INTERVAL = 5.0
DEFAULT_MAX_PREREQUISITE_DEPTH = 20


def _check_url(url: str) -> str:
    """Return ``url`` unchanged if it is an absolute http(s) URL.

    Raises:
        UrlError: Otherwise.
    """
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise UrlError(url)
    return url


def _join(base: str, path: str) -> str:
    if not base.endswith("/"):
        base += "/"
    return base + path


def _float_env(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return float(raw)


@dataclass(frozen=True)
class Config:
    """SDK settings.

    Attributes:
        remote_url: Base URL of the NimbusFlags server.
        toggles_url: Toggles endpoint; derived from ``remote_url`` if unset.
        events_url: Events endpoint; derived from ``remote_url`` if unset.
        realtime_url: Realtime endpoint; derived from ``remote_url`` if unset.
        server_sdk_key: Key sent as ``Authorization`` on every fetch.
        refresh_interval: Seconds between two polls; also the request timeout.
        start_wait: Seconds the client constructor waits for the first
            repository, or ``None`` to return immediately.
        http_client: Optional pre-built ``httpx.Client`` to share.
        max_prerequisite_depth: Longest prerequisite chain evaluated.
    """

    remote_url: str = DEFAULT_REMOTE_URL
    toggles_url: Optional[str] = None
    events_url: Optional[str] = None
    realtime_url: Optional[str] = None
    server_sdk_key: str = ""
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    start_wait: Optional[float] = None
    http_client: Any = None
    max_prerequisite_depth: int = DEFAULT_MAX_PREREQUISITE_DEPTH

    @classmethod
    def from_env(cls, **overrides: Any) -> Config:
        """Build a config from ``NIMBUS_*`` environment variables.

        Keyword arguments take precedence over the environment.
        """
        load_dotenv()

        values = {
            "remote_url": os.getenv("NIMBUS_REMOTE_URL", DEFAULT_REMOTE_URL),
            "toggles_url": os.getenv("NIMBUS_TOGGLES_URL"),
            "events_url": os.getenv("NIMBUS_EVENTS_URL"),
            "realtime_url": os.getenv("NIMBUS_REALTIME_URL"),
            "server_sdk_key": os.getenv("NIMBUS_SERVER_SDK_KEY", ""),
            "start_wait": _float_env("NIMBUS_START_WAIT"),
        }
        refresh_interval = _float_env("NIMBUS_REFRESH_INTERVAL")
        if refresh_interval is not None:
            values["refresh_interval"] = refresh_interval

        values.update(overrides)
        return cls(**values)

    def resolve(self) -> Config:
        """Return a copy with every endpoint URL filled in and validated.

        Raises:
            UrlError: If any URL is not an absolute http(s) URL.
        """
        remote = _check_url(self.remote_url)
        resolved = dataclasses.replace(
            self,
            toggles_url=_check_url(
                self.toggles_url or _join(remote, "api/server-sdk/toggles")
            ),
            events_url=_check_url(self.events_url or _join(remote, "api/events")),
            realtime_url=_check_url(self.realtime_url or _join(remote, "realtime")),
        )
        logger.info(
            "nimbus config toggles_url=%s refresh_interval=%s start_wait=%s",
            resolved.toggles_url,
            resolved.refresh_interval,
            resolved.start_wait,
        )
        return resolved
