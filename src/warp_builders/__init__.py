# Load .env vars from file before everything else
from dotenv import load_dotenv

load_dotenv()

from .logger import setup_logging  # noqa: E402

setup_logging()

# TYPE_CHECKING imports provide full IDE support (autocomplete, type hints)
# while __getattr__ enables lazy loading at runtime for fast CLI startup
from typing import TYPE_CHECKING  # noqa: E402

if TYPE_CHECKING:
    from .builders import BuilderState, RemoteBuilders
    from .config import BuilderConfig


def __getattr__(name):
    """Lazily import core modules only when accessed."""
    if name in ("RemoteBuilders", "BuilderState"):
        from .builders import BuilderState, RemoteBuilders

        attrs = {
            "RemoteBuilders": RemoteBuilders,
            "BuilderState": BuilderState,
        }
        return attrs[name]
    elif name == "BuilderConfig":
        from .config import BuilderConfig

        return BuilderConfig
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "BuilderConfig",
    "BuilderState",
    "RemoteBuilders",
]
