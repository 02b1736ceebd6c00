"""
Client for the WarpBuild builders control plane.
Assigns remote builders for a profile and polls them until ready.
"""

import asyncio
import logging
from typing import List, Optional

import httpx

from warp_builders.config import (
    ASSIGN_RETRY_INTERVAL,
    DETAILS_POLL_INTERVAL,
    BuilderConfig,
)

from ..deadline import Deadline
from ..exceptions import (
    BuilderTimeoutError,
    NonRetriableApiError,
    ReadinessError,
    RetriableTransportError,
)
from ..models import AssignBuilderResponse, BuilderInstance
from ..utils.http import get_authenticated_httpx_client

log = logging.getLogger(__name__)

RETRIABLE_STATUS_CODES = {409, 429}


def is_retriable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in RETRIABLE_STATUS_CODES


class ControlPlaneClient:
    """
    HTTP client for the /api/v1/builders endpoints.

    Every request is authenticated with config.auth_token and every loop is
    bounded by the shared Deadline rather than by an attempt count.
    """

    def __init__(
        self,
        config: BuilderConfig,
        deadline: Deadline,
        retry_interval: float = ASSIGN_RETRY_INTERVAL,
        poll_interval: float = DETAILS_POLL_INTERVAL,
    ):
        self.config = config
        self.deadline = deadline
        self.retry_interval = retry_interval
        self.poll_interval = poll_interval
        self.base_url = config.api_domain.rstrip("/")
        self.assign_attempts = 0
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the authenticated HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = get_authenticated_httpx_client(self.config.auth_token)
        return self._client

    async def close(self) -> None:
        """Close HTTP session."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def assign(self, profile_name: Optional[str] = None) -> List[BuilderInstance]:
        """Request builder assignment for a profile.

        Transport failures and HTTP 5xx/409/429 are retried every
        retry_interval seconds until the deadline expires.

        Returns:
            The assigned builder instances, never empty.

        Raises:
            NonRetriableApiError: On any other non-2xx status, or when no
                builders were assigned.
            BuilderTimeoutError: If the deadline expires first.
        """
        profile_name = profile_name or self.config.profile_name
        endpoint = f"{self.base_url}/api/v1/builders/assign"
        self.assign_attempts = 0

        log.info(f"Assigning WarpBuild builders for profile {profile_name}")

        while self.deadline.remaining():
            self.assign_attempts += 1
            try:
                log.info(
                    f"Making API request to assign builder (attempt {self.assign_attempts})..."
                )
                builders = await self._request_assignment(endpoint, profile_name)
            except RetriableTransportError as e:
                log.warning(f"Assign builder failed: {e}")
                log.info(
                    f"Waiting {self.retry_interval:g} seconds before next attempt..."
                )
                await asyncio.sleep(self.retry_interval)
                continue

            log.info(
                f"Successfully assigned {len(builders)} builder(s) "
                f"after {self.assign_attempts} attempts"
            )
            return builders

        raise BuilderTimeoutError(
            "assign", "Exceeded global timeout waiting for builder assignment"
        )

    async def _request_assignment(
        self, endpoint: str, profile_name: str
    ) -> List[BuilderInstance]:
        client = await self._get_client()
        try:
            response = await client.post(endpoint, json={"profile_name": profile_name})
        except httpx.HTTPError as e:
            raise RetriableTransportError(f"Request error: {e}") from e

        status_code = response.status_code
        if status_code >= 300:
            if is_retriable_status(status_code):
                raise RetriableTransportError(
                    f"HTTP Status {status_code}", status_code=status_code
                )
            body = response.text[:500]
            raise NonRetriableApiError(
                f"API Error: HTTP Status {status_code} - {body or 'Unknown error'}",
                status_code=status_code,
                body=body,
            )

        try:
            data = AssignBuilderResponse.model_validate(response.json())
        except ValueError as e:
            raise RetriableTransportError(f"Invalid assign response: {e}") from e

        if not data.builder_instances:
            raise NonRetriableApiError(
                "No builder instances assigned", status_code=status_code
            )

        return data.builder_instances

    async def details(self, builder_id: str) -> BuilderInstance:
        """Poll a builder's details until it reports ready.

        Transport, HTTP and parse errors while polling are logged and the
        loop continues.

        Returns:
            The ready builder, guaranteed to carry a host.

        Raises:
            ReadinessError: If the builder failed, or is ready without a host.
            BuilderTimeoutError: If the deadline expires first.
        """
        endpoint = f"{self.base_url}/api/v1/builders/{builder_id}/details"

        while self.deadline.remaining():
            try:
                details = await self._fetch_details(endpoint)
            except (httpx.HTTPError, RetriableTransportError, ValueError) as e:
                log.warning(f"Error getting builder details: {e}")
            else:
                if details.is_ready:
                    if not details.host:
                        raise ReadinessError(
                            builder_id,
                            f"Builder {builder_id} is ready but host information is missing",
                        )
                    log.debug(f"Builder {builder_id} is ready")
                    return details

                if details.is_failed:
                    raise ReadinessError(
                        builder_id, f"Builder {builder_id} failed to initialize"
                    )

                log.debug(f"Builder {builder_id} status: {details.status}. Waiting...")

            await asyncio.sleep(self.poll_interval)

        raise BuilderTimeoutError(
            "details", f"Builder {builder_id} not ready after timeout"
        )

    async def _fetch_details(self, endpoint: str) -> BuilderInstance:
        client = await self._get_client()
        response = await client.get(endpoint)
        if response.status_code >= 300:
            raise RetriableTransportError(
                f"Failed to get builder details: {response.status_code}",
                status_code=response.status_code,
            )
        return BuilderInstance.model_validate(response.json())
