"""Command-line client for blocking and unblocking UniFi network clients."""

__version__ = "0.1.0"

from .device import Device  # noqa: E402
from .session import (  # noqa: E402
    HTTPStatusError,
    Session,
    SessionConfig,
    SessionConfigError,
    UninitializedSessionError,
    UniFiError,
)

__all__ = [
    "Device",
    "HTTPStatusError",
    "Session",
    "SessionConfig",
    "SessionConfigError",
    "UninitializedSessionError",
    "UniFiError",
    "__version__",
]
