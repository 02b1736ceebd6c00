"""
Lifecycle of a pool of WarpBuild remote builders.

Typical use from async code:

    builders = RemoteBuilders(BuilderConfig.from_env("ci-pool", api_key=key))
    builders.assign()                 # starts in the background
    await builders.check_required_tools()
    try:
        await builders.setup()        # joins the assignment
        ...                           # docker buildx build --builder <name>
    finally:
        await builders.cleanup()
"""

import asyncio
import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from .config import BuilderConfig
from .core.api.control_plane import ControlPlaneClient
from .core.buildx import BuildxClient
from .core.certs import CertificateProvisioner
from .core.deadline import Deadline
from .core.exceptions import WarpBuildersError
from .core.health import EndpointHealthChecker
from .core.models import BuilderInstance
from .core.registrar import WorkerRegistrar

log = logging.getLogger(__name__)


class BuilderState(str, Enum):
    CONSTRUCTED = "CONSTRUCTED"
    ASSIGNING = "ASSIGNING"
    ASSIGNED = "ASSIGNED"
    SETTING_UP = "SETTING_UP"
    READY = "READY"
    CLEANING_UP = "CLEANING_UP"
    TERMINAL = "TERMINAL"


# States in which setup has touched buildx or the filesystem
TEARDOWN_STATES = {BuilderState.SETTING_UP, BuilderState.READY}
SETUP_STARTED_STATES = TEARDOWN_STATES | {BuilderState.CLEANING_UP, BuilderState.TERMINAL}


class RemoteBuilders:
    """
    Assigns, registers and tears down WarpBuild remote builders.

    All collaborators share one Deadline, started when this object is
    constructed. Collaborators can be injected for testing; by default they
    are built from the config.
    """

    def __init__(
        self,
        config: BuilderConfig,
        deadline: Optional[Deadline] = None,
        control_plane: Optional[ControlPlaneClient] = None,
        health_checker: Optional[EndpointHealthChecker] = None,
        buildx: Optional[BuildxClient] = None,
    ):
        self.config = config
        self.deadline = deadline or Deadline(config.timeout)
        self.control_plane = control_plane or ControlPlaneClient(config, self.deadline)
        self.health_checker = health_checker or EndpointHealthChecker(self.deadline)
        self.buildx = buildx or BuildxClient()

        self.state = BuilderState.CONSTRUCTED
        self._builder_instances: List[BuilderInstance] = []
        self._cert_dirs: List[Path] = []
        self._assignment_task: Optional[asyncio.Task] = None
        self._registrar: Optional[WorkerRegistrar] = None

        log.debug(f"API domain: {config.api_domain}")
        log.debug(f"Is WarpBuild runner: {config.is_warpbuild_runner}")
        log.debug(f"Builder name: {config.builder_name}")

    def __str__(self) -> str:
        return f"{self.__class__.__name__}:{self.config.builder_name}"

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.cleanup()

    def assign(self) -> "asyncio.Task[List[BuilderInstance]]":
        """Start builder assignment in the background and return its task.

        Other work can run while assignment retries; setup() joins the
        task. A second call supersedes the first: the earlier task is
        cancelled and can no longer publish its result.
        """
        previous = self._assignment_task
        if previous is not None and not previous.done():
            log.warning(f"{self} | Superseding in-flight builder assignment")
            previous.cancel()

        self.state = BuilderState.ASSIGNING
        self._assignment_task = asyncio.ensure_future(self._assign())
        return self._assignment_task

    async def _assign(self) -> List[BuilderInstance]:
        builders = await self.control_plane.assign(self.config.profile_name)
        if asyncio.current_task() is self._assignment_task:
            self._builder_instances = builders
            self.state = BuilderState.ASSIGNED
        return builders

    async def setup(self) -> None:
        """Register every assigned builder into one buildx builder.

        Joins the latest assignment: if assign() is called again while
        setup() is waiting, setup() waits on the new task instead.

        Raises:
            WarpBuildersError: If assignment failed, nothing was assigned,
                setup already ran, or any builder could not be registered.
        """
        if self.state in SETUP_STARTED_STATES:
            raise WarpBuildersError(
                f"Setup already ran for {self.config.builder_name} (state {self.state.value})"
            )

        await self._join_assignment()

        if not self.is_assigned():
            raise WarpBuildersError(
                "No builder instances assigned. Call assign() first."
            )

        self.state = BuilderState.SETTING_UP
        self._registrar = WorkerRegistrar(
            self.config.builder_name,
            self.control_plane,
            CertificateProvisioner(
                self.config.cert_root,
                self.config.builder_name,
                on_allocate=self._cert_dirs.append,
            ),
            self.health_checker,
            self.buildx,
        )
        await self._registrar.register_all(self._builder_instances)

        self.state = BuilderState.READY
        log.info(f"{self} | {self.get_builder_count()} builder node(s) ready")

    async def _join_assignment(self) -> None:
        while self._assignment_task is not None:
            task = self._assignment_task
            try:
                await task
            except asyncio.CancelledError:
                # Superseded by a newer assign(); anything else is our own cancellation
                if task is self._assignment_task:
                    raise
                continue
            if task is self._assignment_task:
                return

    async def cleanup(self) -> None:
        """Remove the buildx builder and all certificate directories.

        An assignment still in flight is cancelled first. Otherwise a no-op
        unless setup() started. Never raises: each teardown step is isolated
        and failures are logged.
        """
        try:
            cancelled = await self._cancel_assignment()
            if not cancelled and self.state not in TEARDOWN_STATES:
                return

            self.state = BuilderState.CLEANING_UP
            await self._remove_builder()
            self._remove_cert_dirs()
        finally:
            await self._close_control_plane()
            if self.state == BuilderState.CLEANING_UP:
                self.state = BuilderState.TERMINAL

    async def _cancel_assignment(self) -> bool:
        task = self._assignment_task
        if task is None or task.done():
            return False

        log.info(f"{self} | Cancelling in-flight builder assignment")
        task.cancel()
        await asyncio.wait([task])
        if not task.cancelled() and task.exception() is not None:
            log.debug(f"Builder assignment ended with: {task.exception()}")
        return True

    async def _remove_builder(self) -> None:
        if not (self._registrar and self._registrar.registered):
            return

        log.info(f"Removing builder {self.config.builder_name}")
        try:
            await self.buildx.remove(self.config.builder_name)
        except Exception as e:
            log.warning(f"Error removing builder: {e}")

    def _remove_cert_dirs(self) -> None:
        for cert_dir in self._cert_dirs:
            if not cert_dir.exists():
                continue
            log.info(f"Cleaning up certificates in {cert_dir}")
            try:
                shutil.rmtree(cert_dir)
            except OSError as e:
                log.warning(f"Error removing certificates in {cert_dir}: {e}")

    async def _close_control_plane(self) -> None:
        try:
            await self.control_plane.close()
        except Exception as e:
            log.debug(f"Error closing control plane client: {e}")

    async def check_required_tools(self) -> None:
        await self.buildx.check_required_tools()

    async def print_docker_info(self) -> Dict[str, str]:
        info = await self.buildx.docker_info()
        for label, output in info.items():
            log.info(f"{label}:\n{output}")
        return info

    def is_assigned(self) -> bool:
        return len(self._builder_instances) > 0

    def get_builder_count(self) -> int:
        return len(self._builder_instances)

    def get_builder_ids(self) -> List[str]:
        return [instance.id for instance in self._builder_instances]

    def get_builder_name(self) -> str:
        return self.config.builder_name

    @property
    def cert_dirs(self) -> List[Path]:
        return list(self._cert_dirs)
