"""Reachability checks for a builder's Docker TLS endpoint."""

import asyncio
import logging
import ssl
from typing import Tuple
from urllib.parse import urlsplit

import httpx

from warp_builders.config import (
    DEFAULT_DOCKER_TLS_PORT,
    HEALTH_CONNECT_TIMEOUT,
    HEALTH_POLL_INTERVAL,
    HEALTH_TOTAL_TIMEOUT,
)

from .certs import CredentialBundle
from .deadline import Deadline
from .exceptions import BuilderTimeoutError, ReadinessError

logger = logging.getLogger(__name__)


def parse_docker_host(host: str) -> Tuple[str, int]:
    """Split a builder host such as tcp://10.0.0.5:2376 into (ip, port).

    The scheme is optional and the port defaults to the Docker TLS port.
    IPv6 addresses must be bracketed, as in tcp://[fd00::5]:2376.

    Raises:
        ValueError: If the host or port cannot be parsed.
    """
    netloc = host if "://" in host else f"//{host}"
    parsed = urlsplit(netloc)
    if not parsed.hostname:
        raise ValueError(f"No address in Docker host {host!r}")
    # .port raises ValueError for non-numeric or out of range ports
    return parsed.hostname, parsed.port or DEFAULT_DOCKER_TLS_PORT


def build_ssl_context(bundle: CredentialBundle) -> ssl.SSLContext:
    """Client-authenticated TLS context trusting only the builder's CA."""
    context = ssl.create_default_context(cafile=str(bundle.ca_path))
    context.load_cert_chain(certfile=str(bundle.cert_path), keyfile=str(bundle.key_path))
    return context


class EndpointHealthChecker:
    """Polls GET /version on a builder until one TLS round trip succeeds.

    Each probe has its own connect/total timeouts, independent of the
    global deadline that bounds the polling loop.
    """

    def __init__(
        self,
        deadline: Deadline,
        poll_interval: float = HEALTH_POLL_INTERVAL,
        connect_timeout: float = HEALTH_CONNECT_TIMEOUT,
        total_timeout: float = HEALTH_TOTAL_TIMEOUT,
    ):
        self.deadline = deadline
        self.poll_interval = poll_interval
        self.connect_timeout = connect_timeout
        self.total_timeout = total_timeout

    async def probe(self, server_ip: str, server_port: int, bundle: CredentialBundle) -> bool:
        """Return True if the Docker API answered; the response body is not checked."""
        address = f"[{server_ip}]" if ":" in server_ip else server_ip
        url = f"https://{address}:{server_port}/version"
        logger.debug(f"Testing connection to Docker API at {server_ip}:{server_port}")
        try:
            timeout = httpx.Timeout(self.total_timeout, connect=self.connect_timeout)
            async with httpx.AsyncClient(
                verify=build_ssl_context(bundle), timeout=timeout
            ) as client:
                response = await asyncio.wait_for(
                    client.get(url), timeout=self.total_timeout
                )
            logger.debug(response.text)
            return True
        except (httpx.HTTPError, ssl.SSLError, OSError, asyncio.TimeoutError) as e:
            logger.debug(f"Docker endpoint check error: {e}")
            return False

    async def wait_ready(self, host: str, bundle: CredentialBundle) -> None:
        """Block until the builder's Docker endpoint is reachable.

        Raises:
            ReadinessError: If the host cannot be parsed.
            BuilderTimeoutError: If the deadline expires first.
        """
        builder_id = bundle.directory.name
        try:
            server_ip, server_port = parse_docker_host(host)
        except ValueError as e:
            raise ReadinessError(
                builder_id, f"Builder {builder_id} has an invalid Docker host {host!r}: {e}"
            ) from e

        logger.info(f"Waiting for Docker endpoint at {server_ip}:{server_port}...")

        while self.deadline.remaining():
            if await self.probe(server_ip, server_port, bundle):
                logger.info(f"Docker endpoint at {server_ip}:{server_port} is available")
                return

            logger.debug("Docker endpoint not available yet. Retrying...")
            await asyncio.sleep(self.poll_interval)

        raise BuilderTimeoutError(
            "health", f"Docker endpoint {server_ip}:{server_port} not available after timeout"
        )
