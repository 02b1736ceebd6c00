"""Docker buildx commands used to register remote builder nodes."""

import asyncio
import logging
from typing import Dict, List, NamedTuple

from .certs import CredentialBundle
from .exceptions import MissingToolError, RegistrationError

logger = logging.getLogger(__name__)


class CommandResult(NamedTuple):
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def docker_endpoint(host: str) -> str:
    """Ensure the builder host carries the tcp:// scheme buildx expects."""
    return host if host.startswith("tcp://") else f"tcp://{host}"


class BuildxClient:
    """Thin async wrapper around the docker CLI.

    create/append are the only calls that mutate the shared builder and
    must never run concurrently for the same builder name.
    """

    def __init__(self, docker: str = "docker"):
        self.docker = docker

    async def run(self, *args: str) -> CommandResult:
        """Run a docker command and capture its output.

        Raises:
            FileNotFoundError: If the docker binary is not installed.
        """
        process = await asyncio.create_subprocess_exec(
            self.docker,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        return CommandResult(
            process.returncode,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )

    def create_args(
        self,
        builder_name: str,
        node: str,
        bundle: CredentialBundle,
        platforms: str,
        host: str,
        append: bool = False,
    ) -> List[str]:
        args = ["buildx", "create", "--name", builder_name]
        if append:
            args.append("--append")
        args += [
            "--node", node,
            "--driver", "remote",
            "--driver-opt", f"cacert={bundle.ca_path}",
            "--driver-opt", f"cert={bundle.cert_path}",
            "--driver-opt", f"key={bundle.key_path}",
        ]
        if platforms:
            args += ["--platform", platforms]
        args += ["--use", docker_endpoint(host)]
        return args

    async def create_node(
        self,
        builder_name: str,
        node: str,
        bundle: CredentialBundle,
        platforms: str,
        host: str,
        append: bool = False,
    ) -> None:
        """Create the builder with its first node, or append a node to it.

        Raises:
            RegistrationError: If docker is missing or the command fails.
        """
        args = self.create_args(builder_name, node, bundle, platforms, host, append)
        try:
            result = await self.run(*args)
        except OSError as e:
            raise RegistrationError(f"Failed to setup buildx node: {e}") from e

        if not result.ok:
            raise RegistrationError(
                f"Failed to setup buildx node: {result.stderr.strip() or result.returncode}"
            )

        logger.debug(result.stdout)
        if result.stderr.strip():
            logger.warning(result.stderr.strip())

    async def remove(self, builder_name: str) -> bool:
        """Remove the builder. Failures are logged and reported as False."""
        try:
            result = await self.run("buildx", "rm", builder_name)
        except OSError as e:
            logger.warning(f"Error removing builder: {e}")
            return False

        if not result.ok:
            logger.warning(f"Error removing builder: {result.stderr.strip()}")
            return False

        if result.stderr.strip():
            logger.warning(result.stderr.strip())
        else:
            logger.info(f"Builder {builder_name} removed")
        return True

    async def check_required_tools(self) -> None:
        """Ensure docker is installed; buildx being absent only warns.

        Raises:
            MissingToolError: If docker is not installed.
        """
        try:
            result = await self.run("--version")
        except OSError:
            result = None
        if result is None or not result.ok:
            raise MissingToolError(
                "Docker is not installed. Please install Docker to use WarpBuild builders."
            )
        logger.info("✓ Docker is installed")

        try:
            result = await self.run("buildx", "version")
        except OSError:
            result = None
        if result is None or not result.ok:
            logger.warning("Docker Buildx not available. Will attempt to use Docker directly.")
        else:
            logger.info("✓ Docker Buildx is installed")

    async def docker_info(self) -> Dict[str, str]:
        """Collect docker and buildx version/info output for diagnostics."""
        commands = {
            "docker --version": ("--version",),
            "docker info": ("info",),
            "docker buildx version": ("buildx", "version"),
        }
        info = {}
        for label, args in commands.items():
            try:
                result = await self.run(*args)
            except OSError as e:
                logger.info(f"Error getting {label}: {e}")
                info[label] = ""
                continue
            info[label] = result.stdout if result.ok else ""
            if not result.ok:
                logger.info(f"Error getting {label}: {result.stderr.strip()}")
        return info
