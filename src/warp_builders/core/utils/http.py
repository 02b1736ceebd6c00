"""HTTP utilities for WarpBuild API communication."""

from typing import Optional

import httpx

from warp_builders.config import API_REQUEST_TIMEOUT


def get_authenticated_httpx_client(
    token: Optional[str],
    timeout: Optional[float] = None,
) -> httpx.AsyncClient:
    """Create httpx AsyncClient with WarpBuild bearer authentication.

    Provides a single place to build the Authorization header for every
    control-plane request, whether the token is a user API key or the
    verification token issued to WarpBuild runners.

    Args:
        token: Bearer token. No Authorization header is set when empty.
        timeout: Request timeout in seconds. Defaults to API_REQUEST_TIMEOUT.

    Returns:
        Configured httpx.AsyncClient with Authorization header

    Example:
        async with get_authenticated_httpx_client(config.auth_token) as client:
            response = await client.post(url, json=data)
    """
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    timeout_config = timeout if timeout is not None else API_REQUEST_TIMEOUT
    return httpx.AsyncClient(timeout=timeout_config, headers=headers)
