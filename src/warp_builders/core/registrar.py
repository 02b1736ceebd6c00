"""Sequential registration of assigned builders into one buildx builder."""

import logging
from typing import List

from .api.control_plane import ControlPlaneClient
from .buildx import BuildxClient
from .certs import CertificateProvisioner
from .health import EndpointHealthChecker
from .models import BuilderInstance

logger = logging.getLogger(__name__)

OS_FAMILY = "linux"


def normalize_platforms(arch: str, os_family: str = OS_FAMILY) -> str:
    """Turn "amd64,arm64" into "linux/amd64,linux/arm64".

    Components that already name an OS are kept as they are.
    """
    platforms = []
    for component in (arch or "").split(","):
        component = component.strip()
        if not component:
            continue
        if "/" not in component:
            component = f"{os_family}/{component}"
        platforms.append(component)
    return ",".join(platforms)


class WorkerRegistrar:
    """Drives each builder through details, certificates, health and buildx.

    Builders are processed strictly one after another: buildx has no
    locking around a builder's node list, so create/append must not overlap.
    Any failure aborts the batch; unwinding is left to the orchestrator.
    """

    def __init__(
        self,
        builder_name: str,
        control_plane: ControlPlaneClient,
        provisioner: CertificateProvisioner,
        health_checker: EndpointHealthChecker,
        buildx: BuildxClient,
    ):
        self.builder_name = builder_name
        self.control_plane = control_plane
        self.provisioner = provisioner
        self.health_checker = health_checker
        self.buildx = buildx
        self.registered: List[str] = []

    async def register_all(self, builders: List[BuilderInstance]) -> None:
        for index, builder in enumerate(builders):
            await self.register(index, builder.id)

    async def register(self, index: int, builder_id: str) -> None:
        logger.info(f"Setting up builder node {index} (ID: {builder_id})")

        logger.info(f"Waiting for builder {builder_id} to be ready...")
        details = await self.control_plane.details(builder_id)
        logger.info(f"Builder {builder_id} is ready")

        metadata = details.metadata
        platforms = normalize_platforms(details.arch)

        logger.info(f"Setting up certificates for builder {builder_id}")
        bundle = self.provisioner.provision(
            builder_id, metadata.ca, metadata.client_cert, metadata.client_key
        )

        await self.health_checker.wait_ready(metadata.host, bundle)

        if index == 0:
            logger.info(f"Creating buildx builder with name {self.builder_name}")
        else:
            logger.info(f"Appending node {builder_id} to builder {self.builder_name}")

        await self.buildx.create_node(
            self.builder_name,
            builder_id,
            bundle,
            platforms,
            metadata.host,
            append=index > 0,
        )
        self.registered.append(builder_id)

        if index == 0:
            logger.info(f"Builder {self.builder_name} created successfully")
        else:
            logger.info(f"Node {builder_id} appended to builder {self.builder_name}")
