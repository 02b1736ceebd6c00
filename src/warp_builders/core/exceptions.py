"""Custom exceptions for warp_builders.

Every failure raised while assigning, preparing or registering remote
builders derives from WarpBuildersError, so callers can catch the whole
family at once and still branch on the concrete stage that failed.
"""

from typing import Optional


class WarpBuildersError(Exception):
    """Base exception for all warp_builders errors."""

    pass


class ConfigError(WarpBuildersError):
    """Raised when required configuration is missing or invalid."""

    pass


class MissingToolError(ConfigError):
    """Raised when a required local tool (docker) is not available."""

    pass


class RetriableTransportError(WarpBuildersError):
    """Raised for transport failures and retriable HTTP statuses.

    Only ever raised and handled inside the control-plane retry loop.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class NonRetriableApiError(WarpBuildersError):
    """Raised when the control plane answers with a non-retriable response."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ReadinessError(WarpBuildersError):
    """Raised when a builder reports failure or is ready without host metadata."""

    def __init__(self, builder_id: str, message: str):
        self.builder_id = builder_id
        super().__init__(message)


class ProvisioningError(WarpBuildersError):
    """Raised when builder certificates could not be written intact."""

    pass


class BuilderTimeoutError(WarpBuildersError, TimeoutError):
    """Raised when the global deadline expires inside a polling loop.

    Args:
        stage: Name of the stage that was waiting (assign, details, health).
        message: Human readable description.
    """

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(message)


class RegistrationError(WarpBuildersError):
    """Raised when a buildx create/append call fails."""

    pass
