"""AYMC install/uninstall via SSH.

Both run the same three-step protocol on a provisioning script supplied by
the caller:
1. Upload the script to a fixed /tmp path
2. chmod +x the uploaded script
3. Run it (with environment variables for install), streaming its output

A failing step aborts the remaining ones and raises InstallationError naming
the stage. The script's own exit status is not checked; its output lines are
returned as captured.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

from aymc_remote.models.remote import DEFAULT_BACKEND_PORT
from aymc_remote.ssh.connection import LineCallback, SSHClient
from aymc_remote.utils.errors import AYMCRemoteError, InstallationError

logger = logging.getLogger(__name__)

INSTALL_SCRIPT_PATH = "/tmp/install-aymc.sh"
UNINSTALL_SCRIPT_PATH = "/tmp/uninstall-aymc.sh"

ScriptContent = Union[str, bytes]


class InstallStage(str, Enum):
    """Steps of the provisioning protocol."""

    UPLOAD = "upload"
    CHMOD = "chmod"
    EXECUTE = "execute"


@dataclass
class InstallConfig:
    """Values injected into the install script's environment."""

    db_password: str = field(repr=False)
    jwt_secret: str = field(repr=False)
    app_port: str = DEFAULT_BACKEND_PORT

    def environment(self) -> Dict[str, str]:
        return {
            "DB_PASSWORD": self.db_password,
            "JWT_SECRET": self.jwt_secret,
            "APP_PORT": str(self.app_port),
        }


@dataclass
class InstallResult:
    """Outcome of a completed install/uninstall run."""

    script_path: str
    lines: List[str] = field(default_factory=list)
    stage_reached: InstallStage = InstallStage.EXECUTE
    duration_seconds: float = 0.0


def _single_quote(value: str) -> str:
    # 'it'"'"'s' closes, emits a literal quote, reopens
    return "'" + value.replace("'", "'\"'\"'") + "'"


def build_script_command(script_path: str, env: Optional[Dict[str, str]] = None) -> str:
    """Prefix the script path with KEY='value' assignments."""
    if not env:
        return script_path
    assignments = " ".join(f"{key}={_single_quote(value)}" for key, value in env.items())
    return f"{assignments} {script_path}"


class Installer:
    """Runs the AYMC provisioning scripts on a remote host."""

    def __init__(self, ssh: SSHClient):
        """Initialize installer with SSH connection.

        Args:
            ssh: Active SSH connection to the VPS
        """
        self.ssh = ssh

    async def install(
        self,
        script: ScriptContent,
        config: InstallConfig,
        on_line: Optional[LineCallback] = None,
    ) -> InstallResult:
        """Upload and run the install script with credentials in its env.

        Args:
            script: Content of install-vps.sh
            config: Database password, JWT secret and backend port
            on_line: Optional callback for each output line

        Raises:
            InstallationError: A protocol step failed (see .stage)
        """
        logger.info(f"Installing AYMC on {self.ssh.host} (port {config.app_port})")
        return await self._run_protocol(
            script, INSTALL_SCRIPT_PATH, config.environment(), on_line
        )

    async def uninstall(
        self,
        script: ScriptContent,
        on_line: Optional[LineCallback] = None,
    ) -> InstallResult:
        """Upload and run the uninstall script."""
        logger.info(f"Uninstalling AYMC from {self.ssh.host}")
        return await self._run_protocol(script, UNINSTALL_SCRIPT_PATH, None, on_line)

    async def _run_protocol(
        self,
        script: ScriptContent,
        remote_path: str,
        env: Optional[Dict[str, str]],
        on_line: Optional[LineCallback],
    ) -> InstallResult:
        start = time.time()
        result = InstallResult(script_path=remote_path)

        # Step 1: Upload script
        result.stage_reached = InstallStage.UPLOAD
        try:
            await self.ssh.upload_content(script, remote_path)
        except AYMCRemoteError as e:
            raise InstallationError(
                f"Could not upload script to {remote_path}: {e}",
                stage=InstallStage.UPLOAD.value,
            ) from e
        logger.info(f"Script uploaded to {remote_path}")

        # Step 2: Make it executable
        result.stage_reached = InstallStage.CHMOD
        try:
            await self.ssh.run_checked(f"chmod +x {remote_path}")
        except AYMCRemoteError as e:
            raise InstallationError(
                f"Could not set execute permission on {remote_path}: {e}",
                stage=InstallStage.CHMOD.value,
            ) from e

        # Step 3: Run with streamed output
        result.stage_reached = InstallStage.EXECUTE
        command = build_script_command(remote_path, env)
        redacted = build_script_command(
            remote_path, {key: "***" for key in env} if env else None
        )
        logger.info(f"Running: {redacted}")
        try:
            result.lines = await self.ssh.run_streaming(command, on_line=on_line)
        except AYMCRemoteError as e:
            raise InstallationError(
                f"Script execution failed: {str(e).replace(command, redacted)}",
                stage=InstallStage.EXECUTE.value,
            ) from e

        result.duration_seconds = time.time() - start
        logger.info(
            f"Script finished in {result.duration_seconds:.1f}s "
            f"({len(result.lines)} lines)"
        )
        return result
