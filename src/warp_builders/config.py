"""Configuration for WarpBuild remote builders."""

import os
from pathlib import Path
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .core.exceptions import ConfigError

DEFAULT_API_DOMAIN = "https://api.warpbuild.com"
DEFAULT_TIMEOUT = 600.0  # seconds
DEFAULT_CERT_ROOT = Path.home() / ".warpbuild" / "buildkit"

# Polling configuration (seconds)
ASSIGN_RETRY_INTERVAL = 10.0
DETAILS_POLL_INTERVAL = 2.0
HEALTH_POLL_INTERVAL = 2.0
HEALTH_CONNECT_TIMEOUT = 5.0
HEALTH_TOTAL_TIMEOUT = 10.0
API_REQUEST_TIMEOUT = 30.0

DEFAULT_DOCKER_TLS_PORT = 2376


def generate_builder_name() -> str:
    return f"builder-{uuid4()}"


class BuilderConfig(BaseModel):
    """Immutable settings for one orchestration run.

    Environment lookups happen once, in from_env(); nothing downstream reads
    os.environ.
    """

    model_config = ConfigDict(frozen=True)

    profile_name: str
    api_key: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    api_domain: str = DEFAULT_API_DOMAIN
    runner_token: Optional[str] = None
    cert_root: Path = DEFAULT_CERT_ROOT
    builder_name: str = Field(default_factory=generate_builder_name)

    @model_validator(mode="after")
    def validate_inputs(self):
        if not self.profile_name or not self.profile_name.strip():
            raise ConfigError("Profile name is required")

        if not self.is_warpbuild_runner and not self.api_key:
            raise ConfigError("API key is required for non-WarpBuild runners")

        return self

    @property
    def is_warpbuild_runner(self) -> bool:
        return bool(self.runner_token)

    @property
    def auth_token(self) -> str:
        """Bearer token: the runner verification token wins over the API key."""
        if self.is_warpbuild_runner:
            return self.runner_token
        return self.api_key

    @classmethod
    def from_env(
        cls,
        profile_name: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        **overrides,
    ) -> "BuilderConfig":
        """Build a config, reading the WarpBuild environment exactly once.

        Reads WARPBUILD_API_DOMAIN and WARPBUILD_RUNNER_VERIFICATION_TOKEN.

        Raises:
            ConfigError: If the profile name or credentials are missing.
        """
        values = {
            "profile_name": profile_name,
            "api_key": api_key or None,
            "api_domain": os.getenv("WARPBUILD_API_DOMAIN") or DEFAULT_API_DOMAIN,
            "runner_token": os.getenv("WARPBUILD_RUNNER_VERIFICATION_TOKEN") or None,
        }
        if timeout is not None:
            values["timeout"] = timeout
        values.update(overrides)
        return cls(**values)
