"""Per-builder TLS credential materialisation."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .exceptions import ProvisioningError

logger = logging.getLogger(__name__)

CA_FILE = "ca.pem"
CERT_FILE = "cert.pem"
KEY_FILE = "key.pem"


@dataclass(frozen=True)
class CredentialBundle:
    """PEM material for one builder and the directory it was written to."""

    directory: Path
    ca: bytes
    cert: bytes
    key: bytes

    @property
    def ca_path(self) -> Path:
        return self.directory / CA_FILE

    @property
    def cert_path(self) -> Path:
        return self.directory / CERT_FILE

    @property
    def key_path(self) -> Path:
        return self.directory / KEY_FILE


class CertificateProvisioner:
    """Writes builder certificates under <cert_root>/<builder_name>/<builder_id>/.

    Args:
        cert_root: Local configuration root for all builder certificates.
        builder_name: Cluster name, scopes directories to one run.
        on_allocate: Called with each directory as soon as it exists, so the
            owner can remove it later even if provisioning fails afterwards.
    """

    def __init__(
        self,
        cert_root: Path,
        builder_name: str,
        on_allocate: Optional[Callable[[Path], None]] = None,
    ):
        self.cert_root = Path(cert_root).expanduser()
        self.builder_name = builder_name
        self._on_allocate = on_allocate

    def cert_dir(self, builder_id: str) -> Path:
        return self.cert_root / self.builder_name / builder_id

    def provision(
        self, builder_id: str, ca: str, cert: str, key: str
    ) -> CredentialBundle:
        """Write ca.pem, cert.pem and key.pem for a builder and verify them.

        Raises:
            ProvisioningError: If any written file is empty.
        """
        cert_dir = self.cert_dir(builder_id)
        cert_dir.mkdir(parents=True, exist_ok=True)
        if self._on_allocate is not None:
            self._on_allocate(cert_dir)

        bundle = CredentialBundle(
            directory=cert_dir,
            ca=(ca or "").encode(),
            cert=(cert or "").encode(),
            key=(key or "").encode(),
        )

        bundle.ca_path.write_bytes(bundle.ca)
        bundle.cert_path.write_bytes(bundle.cert)
        bundle.key_path.write_bytes(bundle.key)
        try:
            os.chmod(bundle.key_path, 0o600)
        except OSError:
            pass

        for path in (bundle.ca_path, bundle.cert_path, bundle.key_path):
            if path.stat().st_size == 0:
                raise ProvisioningError(
                    f"Failed to write certificate file {path.name} for builder {builder_id}"
                )

        logger.debug(f"Certificates for builder {builder_id} written to {cert_dir}")
        return bundle
