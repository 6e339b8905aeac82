"""Records describing the remote host."""

from .remote import (
    ConnectionTarget,
    ServiceStatus,
    BackendConfig,
    DiskSpace,
    HostInfo,
    parse_backend_env,
    DEFAULT_BACKEND_PORT,
    DEFAULT_BACKEND_ENVIRONMENT,
)

__all__ = [
    "ConnectionTarget",
    "ServiceStatus",
    "BackendConfig",
    "DiskSpace",
    "HostInfo",
    "parse_backend_env",
    "DEFAULT_BACKEND_PORT",
    "DEFAULT_BACKEND_ENVIRONMENT",
]
