"""Pre-installation checks and post-installation verification.

Prerequisites (before running install-vps.sh):
1. SSH connection - session is open (required)
2. sudo - passwordless sudo available (required)
3. Port available - nothing listens on the backend port (required)
4. Disk space - at least 2GB free on / (required)
5. OS compatible - Ubuntu/Debian/CentOS/RHEL (optional)

Verification (after installing):
- backend installed and running according to check_services()
- backend /health endpoint answers 200 over HTTP
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import httpx

from aymc_remote.ssh.probe import RemoteStateProbe
from aymc_remote.utils.errors import AYMCRemoteError

logger = logging.getLogger(__name__)

MIN_DISK_MB = 2048
SUPPORTED_DISTROS = ("ubuntu", "debian", "centos", "rhel")


class CheckStatus(str, Enum):
    """Status of a single check."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class CheckResult:
    """Result of a single check."""

    name: str
    status: CheckStatus
    message: str = ""
    required: bool = True
    duration_ms: float = 0.0

    @property
    def passed(self) -> bool:
        return self.status == CheckStatus.PASSED


@dataclass
class PrerequisiteReport:
    """All prerequisite checks for one host."""

    checks: List[CheckResult] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        """True when every required check passed."""
        return all(c.passed for c in self.checks if c.required)

    @property
    def summary(self) -> str:
        passed = sum(1 for c in self.checks if c.passed)
        failed = sum(1 for c in self.checks if c.status == CheckStatus.FAILED)
        return f"{passed}/{len(self.checks)} checks passed, {failed} failed"


async def validate_prerequisites(
    probe: RemoteStateProbe,
    port: int = 8080,
    min_disk_mb: int = MIN_DISK_MB,
) -> PrerequisiteReport:
    """Run every prerequisite check; one failing check does not stop the rest."""
    report = PrerequisiteReport()

    connected = probe.ssh.is_connected()
    report.checks.append(
        CheckResult(
            name="ssh_connection",
            status=CheckStatus.PASSED if connected else CheckStatus.FAILED,
            message="SSH session active" if connected else "No active SSH connection",
        )
    )

    async def sudo():
        ok = await probe.has_sudo_access()
        return ok, "sudo available" if ok else "User has no passwordless sudo"

    async def port_free():
        ok = await probe.check_port_available(port)
        return ok, f"Port {port} available" if ok else f"Port {port} already in use"

    async def disk():
        space = await probe.get_disk_space()
        ok = space.available_mb >= min_disk_mb
        return ok, f"{space.available_mb}MB available (need {min_disk_mb}MB)"

    async def os_compatible():
        info = await probe.get_host_info()
        ok = any(d in info.distro.lower() or d in info.name.lower() for d in SUPPORTED_DISTROS)
        if ok:
            return ok, f"{info.name} {info.version}"
        return ok, f"OS not officially supported: {info.name}"

    for name, check, required in (
        ("sudo", sudo, True),
        ("port_available", port_free, True),
        ("disk_space", disk, True),
        ("os_compatible", os_compatible, False),
    ):
        report.checks.append(await _timed(name, check, required))

    if report.ready:
        logger.info(f"Prerequisites met: {report.summary}")
    else:
        logger.warning(f"Prerequisites not met: {report.summary}")
    return report


async def _timed(name: str, check, required: bool) -> CheckResult:
    start = time.time()
    try:
        ok, message = await check()
        status = CheckStatus.PASSED if ok else CheckStatus.FAILED
    except AYMCRemoteError as e:
        status, message = CheckStatus.FAILED, str(e)
    return CheckResult(
        name=name,
        status=status,
        message=message,
        required=required,
        duration_ms=(time.time() - start) * 1000,
    )


async def verify_installation(probe: RemoteStateProbe) -> CheckResult:
    """Pass when the backend binary is installed and its service is active."""
    status = await probe.check_services()
    if status.backend_installed and status.backend_running:
        return CheckResult(
            name="installation",
            status=CheckStatus.PASSED,
            message=f"Backend installed at {status.backend_path} and running",
        )
    if not status.backend_installed:
        message = "Backend binary not found"
    else:
        message = "Backend installed but service not running"
    return CheckResult(name="installation", status=CheckStatus.FAILED, message=message)


class BackendHealthChecker:
    """HTTP health check against the installed backend.

    Usage:
        async with BackendHealthChecker("http://vps:8080") as checker:
            result = await checker.check_health()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize HTTP health checker.

        Args:
            base_url: Backend root URL (e.g., http://host:8080)
            timeout: HTTP request timeout
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "BackendHealthChecker":
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def check_health(self) -> CheckResult:
        """GET /health on the backend."""
        start = time.time()
        url = f"{self.base_url}/health"
        try:
            response = await self._get_client().get(url)
        except httpx.HTTPError as e:
            return CheckResult(
                name="health_endpoint",
                status=CheckStatus.FAILED,
                message=f"Health request failed: {e}",
                duration_ms=(time.time() - start) * 1000,
            )

        if response.status_code == 200:
            status, message = CheckStatus.PASSED, "Health endpoint returned 200"
        else:
            status = CheckStatus.FAILED
            message = f"Health endpoint returned {response.status_code}"
        return CheckResult(
            name="health_endpoint",
            status=status,
            message=message,
            duration_ms=(time.time() - start) * 1000,
        )
