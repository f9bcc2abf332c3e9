"""
roguerun - deterministic adventure run engine.

This package holds the headless simulation that drives a single roguelite run:
- Seeded, index-addressable RNG threaded explicitly through every call
- Stat derivation from attributes, equipment and run modifiers
- Node generation, difficulty scaling and event resolution
- Multi-actor combat simulation with rewards and item drops
- The run state machine orchestrating the above

Persistence, authentication and HTTP layers are expected to wrap these services.
"""
from importlib.metadata import PackageNotFoundError, version

from .errors import (
    ConfigError,
    EngineError,
    ExhaustedResource,
    InternalInvariant,
    InvalidChoice,
    InvalidTransition,
)

try:
    __version__ = version("roguerun")
except PackageNotFoundError:  # pragma: no cover - during tests without packaging
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "ConfigError",
    "EngineError",
    "ExhaustedResource",
    "InternalInvariant",
    "InvalidChoice",
    "InvalidTransition",
]
