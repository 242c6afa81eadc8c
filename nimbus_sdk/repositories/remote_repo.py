# NimbusFlags/nimbus_sdk/repositories/remote_repo.py
"""HTTP access to the NimbusFlags toggles endpoint."""


from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..config import USER_AGENT
from ..errors.exceptions import HttpError
from .models import Repository, load_json


logger = logging.getLogger(__name__)


def fetch_repository(
    client: httpx.Client,
    toggles_url: str,
    sdk_key: str,
    version: Optional[int],
    timeout: float,
) -> Repository:
    """Fetch and parse the full toggles document.

    The current version is sent as a query parameter so the server can tell
    which snapshot the SDK already holds. The response status is not
    inspected: any body that parses as a repository is accepted.

    Args:
        client: The HTTP client to issue the request with.
        toggles_url: Absolute URL of the toggles endpoint.
        sdk_key: Server SDK key, sent as the ``Authorization`` header.
        version: Version of the snapshot currently held, if any.
        timeout: Request timeout in seconds.

    Returns:
        Repository: The parsed snapshot.

    Raises:
        HttpError: If the request fails at the transport level.
        JsonError: If the body is not a valid repository document.
    """
    params = {} if version is None else {"version": str(version)}
    headers = {
        "Authorization": sdk_key,
        "User-Agent": USER_AGENT,
    }
    try:
        response = client.get(
            toggles_url,
            params=params,
            headers=headers,
            timeout=timeout,
        )
    except httpx.HTTPError as exc:
        raise HttpError(str(exc)) from exc

    logger.debug("toggles response status=%s", response.status_code)
    return load_json(response.text)
