from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class BuilderStatus(str, Enum):
    PENDING = "pending"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class BuilderMetadata(BaseModel):
    host: Optional[str] = ""
    ca: Optional[str] = ""
    client_cert: Optional[str] = ""
    client_key: Optional[str] = ""


class BuilderInstance(BaseModel):
    """A remote builder as reported by the control plane.

    The status is kept as the raw string so unknown states from the API are
    logged verbatim instead of failing validation.
    """

    id: str
    arch: str = ""
    status: str = ""
    metadata: Optional[BuilderMetadata] = None

    def __str__(self) -> str:
        return f"Builder:{self.id}"

    @property
    def is_ready(self) -> bool:
        return self.status == BuilderStatus.READY

    @property
    def is_failed(self) -> bool:
        return self.status == BuilderStatus.FAILED

    @property
    def host(self) -> str:
        return (self.metadata.host or "") if self.metadata else ""


class AssignBuilderResponse(BaseModel):
    builder_instances: Optional[List[BuilderInstance]] = None
