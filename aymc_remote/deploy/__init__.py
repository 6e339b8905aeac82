"""AYMC installation over SSH and its pre/post checks."""

from .installer import (
    Installer,
    InstallConfig,
    InstallResult,
    InstallStage,
    build_script_command,
    INSTALL_SCRIPT_PATH,
    UNINSTALL_SCRIPT_PATH,
)
from .checks import (
    BackendHealthChecker,
    CheckResult,
    CheckStatus,
    PrerequisiteReport,
    validate_prerequisites,
    verify_installation,
)

__all__ = [
    # Provisioning protocol
    "Installer",
    "InstallConfig",
    "InstallResult",
    "InstallStage",
    "build_script_command",
    "INSTALL_SCRIPT_PATH",
    "UNINSTALL_SCRIPT_PATH",
    # Checks
    "BackendHealthChecker",
    "CheckResult",
    "CheckStatus",
    "PrerequisiteReport",
    "validate_prerequisites",
    "verify_installation",
]
