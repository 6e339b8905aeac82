"""Utility modules for AYMC remote administration."""

from .errors import (
    AYMCRemoteError,
    SSHConnectionError,
    TransportError,
    HandshakeError,
    AuthenticationError,
    NotConnectedError,
    ChannelError,
    TransferError,
    CommandError,
    ParseError,
    KeyFileError,
    InstallationError,
)
from .logging import setup_logging

__all__ = [
    "AYMCRemoteError",
    "SSHConnectionError",
    "TransportError",
    "HandshakeError",
    "AuthenticationError",
    "NotConnectedError",
    "ChannelError",
    "TransferError",
    "CommandError",
    "ParseError",
    "KeyFileError",
    "InstallationError",
    "setup_logging",
]
