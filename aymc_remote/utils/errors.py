"""Error hierarchy for AYMC remote administration.

Every failure raised by the SSH core derives from AYMCRemoteError so the
caller can render a single failure envelope.
"""

from typing import Optional


class AYMCRemoteError(Exception):
    """Base exception for all AYMC remote errors."""

    pass


class SSHConnectionError(AYMCRemoteError):
    """Raised when an SSH session cannot be established."""

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ):
        super().__init__(message)
        self.host = host
        self.port = port


class TransportError(SSHConnectionError):
    """Raised when the host/port cannot be reached."""

    pass


class HandshakeError(SSHConnectionError):
    """Raised when the SSH protocol handshake fails."""

    pass


class AuthenticationError(SSHConnectionError):
    """Raised when the credential is rejected or auth is not confirmed."""

    pass


class NotConnectedError(AYMCRemoteError):
    """Raised when an operation needs a session and none is open."""

    def __init__(self, message: str = "No active SSH connection"):
        super().__init__(message)


class ChannelError(AYMCRemoteError):
    """Raised when a command channel cannot be opened, executed or closed."""

    def __init__(self, message: str, command: Optional[str] = None):
        super().__init__(message)
        self.command = command


class TransferError(ChannelError):
    """Raised when a file transfer to the remote host fails."""

    def __init__(self, message: str, remote_path: Optional[str] = None):
        super().__init__(message)
        self.remote_path = remote_path


class CommandError(AYMCRemoteError):
    """Raised when a remote command exits with a non-zero status.

    The captured output is attached for diagnostics.
    """

    def __init__(
        self,
        message: str,
        command: str = "",
        exit_code: int = -1,
        output: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.output = output
        self.stderr = stderr


class ParseError(AYMCRemoteError):
    """Raised when remote output does not have the expected shape."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class KeyFileError(AYMCRemoteError):
    """Raised when the temporary file for an inline key cannot be handled."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class InstallationError(AYMCRemoteError):
    """Raised when a step of the install/uninstall protocol fails."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage
