"""Pydantic models for the remote host state.

These are the records handed back to callers: connection target,
service snapshot, backend configuration, disk usage and OS identity.
All of them are recomputed on every probe; nothing is cached.
"""

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BACKEND_PORT = "8080"
DEFAULT_BACKEND_ENVIRONMENT = "production"


class ConnectionTarget(BaseModel):
    """Host, port and user for one SSH session."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(..., min_length=1, description="SSH hostname or IP")
    port: int = Field(22, ge=0, le=65535, description="SSH port")
    username: str = Field(..., min_length=1, description="SSH username")

    def __str__(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"


class ServiceStatus(BaseModel):
    """Installation and runtime state of the AYMC services."""

    backend_installed: bool = False
    agent_installed: bool = False
    backend_running: bool = False
    agent_running: bool = False
    postgresql_running: bool = False
    backend_path: Optional[str] = None
    agent_path: Optional[str] = None


def parse_backend_env(content: str) -> Tuple[str, str]:
    """Extract (port, environment) from a backend.env file.

    Blank lines and ``#`` comments are skipped, each remaining line is split
    at the first ``=``, and values lose surrounding whitespace and double
    quotes. Only APP_PORT and APP_ENV are recognized.
    """
    port = DEFAULT_BACKEND_PORT
    environment = DEFAULT_BACKEND_ENVIRONMENT

    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"')

        if key == "APP_PORT":
            port = value
        elif key == "APP_ENV":
            environment = value

    return port, environment


class BackendConfig(BaseModel):
    """Backend endpoints derived from /etc/aymc/backend.env."""

    api_url: str = Field(..., description="REST base URL")
    ws_url: str = Field(..., description="WebSocket URL")
    environment: str = DEFAULT_BACKEND_ENVIRONMENT
    port: str = DEFAULT_BACKEND_PORT

    @classmethod
    def from_env(cls, host: str, content: str) -> "BackendConfig":
        """Build the config from env file content and the SSH host."""
        port, environment = parse_backend_env(content)
        return cls(
            api_url=f"http://{host}:{port}/api/v1",
            ws_url=f"ws://{host}:{port}/api/v1/ws",
            environment=environment,
            port=port,
        )


class DiskSpace(BaseModel):
    """Disk usage of the root filesystem in megabytes."""

    total_mb: int = Field(0, ge=0)
    used_mb: int = Field(0, ge=0)
    available_mb: int = Field(0, ge=0)
    percent_used: int = Field(0, ge=0, le=100)

    @classmethod
    def from_usage(cls, total_mb: int, used_mb: int, available_mb: int) -> "DiskSpace":
        if total_mb > 0:
            percent = min(int(used_mb / total_mb * 100), 100)
        else:
            percent = 0
        return cls(
            total_mb=total_mb,
            used_mb=used_mb,
            available_mb=available_mb,
            percent_used=percent,
        )


class HostInfo(BaseModel):
    """Operating system identity from /etc/os-release."""

    name: str = "unknown"
    version: str = "unknown"
    distro: str = "unknown"
    raw: str = ""

    @classmethod
    def from_os_release(cls, content: str) -> "HostInfo":
        info = cls(raw=content)
        for line in content.splitlines():
            if line.startswith("NAME="):
                info.name = line.split("=", 1)[1].strip('"')
            elif line.startswith("VERSION="):
                info.version = line.split("=", 1)[1].strip('"')
            elif line.startswith("ID="):
                info.distro = line.split("=", 1)[1].strip('"')
        return info
