"""Read-only probes of the remote AYMC host.

Every probe is recomputed from fresh command output:
- File existence and content
- systemd service state
- AYMC installation snapshot (ServiceStatus)
- Backend configuration from /etc/aymc/backend.env
- Disk space and port availability
- sudo access, OS identity, Docker, journal logs

is_service_running, check_port_available, has_sudo_access and check_docker
turn command and channel failures into False; "check failed" and "not
active" are not distinguished. Everything else propagates errors.
"""

import logging
from typing import List

from aymc_remote.models.remote import BackendConfig, DiskSpace, HostInfo, ServiceStatus
from aymc_remote.ssh.connection import SSHClient
from aymc_remote.utils.errors import AYMCRemoteError, ChannelError, CommandError, ParseError

logger = logging.getLogger(__name__)

BACKEND_BINARY_PATH = "/opt/aymc/backend/aymc-backend"
AGENT_BINARY_PATH = "/opt/aymc/agent/aymc-agent"
BACKEND_INSTALL_DIR = "/opt/aymc/backend"
AGENT_INSTALL_DIR = "/opt/aymc/agent"
BACKEND_CONFIG_PATH = "/etc/aymc/backend.env"

BACKEND_SERVICE = "aymc-backend"
AGENT_SERVICE = "aymc-agent"
DATABASE_SERVICE = "postgresql"


def parse_disk_space(output: str) -> DiskSpace:
    """Parse one ``df -m`` data row.

    Expected columns: filesystem, 1M-blocks, used, available, use%, mounted.
    Numeric columns that do not parse count as 0.

    Raises:
        ParseError: The row has fewer than 5 fields
    """
    parts = output.split()
    if len(parts) < 5:
        raise ParseError("Could not parse disk space information", output=output)

    return DiskSpace.from_usage(
        total_mb=_to_mb(parts[1]),
        used_mb=_to_mb(parts[2]),
        available_mb=_to_mb(parts[3]),
    )


def _to_mb(value: str) -> int:
    try:
        return max(int(value), 0)
    except ValueError:
        return 0


class RemoteStateProbe:
    """Queries the state of an AYMC installation over SSH."""

    def __init__(self, ssh: SSHClient):
        self.ssh = ssh

    async def file_exists(self, path: str) -> bool:
        """Check if a file or directory exists on the remote host."""
        output = await self.ssh.run_checked(
            f"test -e {path} && echo 'exists' || echo 'not_exists'"
        )
        return output.strip() == "exists"

    async def read_file(self, path: str) -> str:
        """Return the remote file content verbatim."""
        return await self.ssh.run_checked(f"cat {path}")

    async def is_service_running(self, name: str) -> bool:
        """Check if a systemd service is active."""
        try:
            output = await self.ssh.run_checked(f"systemctl is-active {name}")
        except (CommandError, ChannelError) as e:
            logger.debug(f"Service {name} not active: {e}")
            return False
        return output.strip() == "active"

    async def check_services(self) -> ServiceStatus:
        """Snapshot the AYMC installation and service state.

        Each flag is evaluated independently; a flag whose check errors is
        reported as False.
        """
        backend_installed = await self._safe_check(self.file_exists(BACKEND_BINARY_PATH))
        agent_installed = await self._safe_check(self.file_exists(AGENT_BINARY_PATH))
        backend_running = await self._safe_check(self.is_service_running(BACKEND_SERVICE))
        agent_running = await self._safe_check(self.is_service_running(AGENT_SERVICE))
        postgresql_running = await self._safe_check(self.is_service_running(DATABASE_SERVICE))

        return ServiceStatus(
            backend_installed=backend_installed,
            agent_installed=agent_installed,
            backend_running=backend_running,
            agent_running=agent_running,
            postgresql_running=postgresql_running,
            backend_path=BACKEND_INSTALL_DIR if backend_installed else None,
            agent_path=AGENT_INSTALL_DIR if agent_installed else None,
        )

    async def _safe_check(self, check) -> bool:
        try:
            return await check
        except AYMCRemoteError as e:
            logger.warning(f"Service check failed: {e}")
            return False

    async def get_backend_config(self) -> BackendConfig:
        """Read /etc/aymc/backend.env and derive the backend URLs."""
        try:
            content = await self.read_file(BACKEND_CONFIG_PATH)
        except CommandError as e:
            raise CommandError(
                f"Could not read {BACKEND_CONFIG_PATH}: {e}",
                command=e.command,
                exit_code=e.exit_code,
                output=e.output,
                stderr=e.stderr,
            ) from e
        return BackendConfig.from_env(self.ssh.host, content)

    async def get_disk_space(self) -> DiskSpace:
        """Disk usage of the root filesystem."""
        output = await self.ssh.run_checked("df -m / | tail -1")
        return parse_disk_space(output)

    async def check_port_available(self, port: int) -> bool:
        """Check that nothing listens on the given port.

        Returns False when the check itself cannot run.
        """
        try:
            output = await self.ssh.run_checked(
                f"netstat -tuln | grep :{port} || echo 'AVAILABLE'"
            )
        except (CommandError, ChannelError) as e:
            logger.debug(f"Port {port} check failed: {e}")
            return False
        return "AVAILABLE" in output

    async def has_sudo_access(self) -> bool:
        """Check for passwordless sudo."""
        try:
            await self.ssh.run_checked("sudo -n true 2>&1")
        except (CommandError, ChannelError):
            return False
        return True

    async def get_host_info(self) -> HostInfo:
        """OS identity from /etc/os-release."""
        output = await self.ssh.run_checked("cat /etc/os-release")
        return HostInfo.from_os_release(output)

    async def check_docker(self) -> bool:
        """Check that Docker is installed and its daemon answers."""
        try:
            await self.ssh.run_checked("which docker")
            await self.ssh.run_checked("docker ps")
        except (CommandError, ChannelError):
            return False
        return True

    async def get_system_logs(self, service: str, lines: int = 100) -> List[str]:
        """Last journal lines of a systemd unit."""
        output = await self.ssh.run_checked(
            f"journalctl -u {service} -n {lines} --no-pager"
        )
        return output.splitlines()
