"""SSH session, command execution and remote probes."""

from .credentials import (
    Credential,
    Password,
    PrivateKeyFile,
    PrivateKeyInline,
    AuthCredential,
    credential_from_options,
)
from .connection import SSHClient, CommandResult, LineAssembler, open_session
from .session import SessionSlot
from .probe import RemoteStateProbe, parse_disk_space

__all__ = [
    "Credential",
    "Password",
    "PrivateKeyFile",
    "PrivateKeyInline",
    "AuthCredential",
    "credential_from_options",
    "SSHClient",
    "CommandResult",
    "LineAssembler",
    "open_session",
    "SessionSlot",
    "RemoteStateProbe",
    "parse_disk_space",
]
