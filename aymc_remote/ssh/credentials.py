"""SSH authentication credentials.

Three credential shapes are supported:
- Password
- PrivateKeyFile: key read from a local path
- PrivateKeyInline: key text held in memory

Inline keys are written to a temporary 0600 file only for the duration of
one authentication attempt and removed afterwards on every path.
"""

import logging
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Union

import asyncssh

from aymc_remote.utils.errors import AuthenticationError, KeyFileError

logger = logging.getLogger(__name__)

KEY_FILE_PREFIX = "aymc_key_"

AuthOptions = Dict[str, Any]


@contextmanager
def temporary_key_file(key_data: str) -> Iterator[str]:
    """Materialize key text into a private temp file, removed on exit.

    Yields:
        Path of the temporary key file (mode 0600)
    """
    try:
        fd, path = tempfile.mkstemp(
            prefix=f"{KEY_FILE_PREFIX}{os.getpid()}_", suffix=".tmp"
        )
    except OSError as e:
        raise KeyFileError(f"Could not create temporary key file: {e}") from e

    try:
        try:
            with os.fdopen(fd, "w") as f:
                os.chmod(path, 0o600)
                f.write(key_data)
        except OSError as e:
            raise KeyFileError(
                f"Could not write temporary key file: {e}", path=path
            ) from e

        yield path
    except BaseException:
        # The pending error wins over a cleanup failure
        _remove_key_file(path, strict=False)
        raise
    else:
        _remove_key_file(path)


def _remove_key_file(path: str, strict: bool = True) -> None:
    try:
        os.unlink(path)
        logger.debug(f"Deleted temporary key file: {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        if not strict:
            logger.warning(f"Could not remove temporary key file {path}: {e}")
            return
        raise KeyFileError(
            f"Could not remove temporary key file: {e}", path=path
        ) from e


def _load_key(path: str, passphrase: Optional[str]) -> asyncssh.SSHKey:
    try:
        return asyncssh.read_private_key(path, passphrase)
    except (asyncssh.KeyImportError, asyncssh.KeyEncryptionError) as e:
        raise AuthenticationError(f"Could not load private key: {e}") from e
    except OSError as e:
        raise AuthenticationError(f"Could not read private key {path}: {e}") from e


class Credential:
    """Base class for the supported authentication strategies."""

    auth_type = ""

    @contextmanager
    def auth_options(self) -> Iterator[AuthOptions]:
        """Yield asyncssh.connect() keyword options for one attempt."""
        raise NotImplementedError


@dataclass(frozen=True)
class Password(Credential):
    """Password authentication."""

    password: str = field(repr=False)

    auth_type = "password"

    @contextmanager
    def auth_options(self) -> Iterator[AuthOptions]:
        yield {
            "password": self.password,
            "client_keys": None,
            "preferred_auth": "password,keyboard-interactive",
        }


@dataclass(frozen=True)
class PrivateKeyFile(Credential):
    """Private key read from a local file, with optional passphrase."""

    path: str
    passphrase: Optional[str] = field(default=None, repr=False)

    auth_type = "private_key_file"

    @contextmanager
    def auth_options(self) -> Iterator[AuthOptions]:
        key = _load_key(self.path, self.passphrase)
        yield {
            "client_keys": [key],
            "preferred_auth": "publickey",
        }


@dataclass(frozen=True)
class PrivateKeyInline(Credential):
    """Private key passed as text (e.g. pasted by the user)."""

    key_data: str = field(repr=False)
    passphrase: Optional[str] = field(default=None, repr=False)

    auth_type = "private_key_data"

    @contextmanager
    def auth_options(self) -> Iterator[AuthOptions]:
        with temporary_key_file(self.key_data) as path:
            key = _load_key(path, self.passphrase)
            yield {
                "client_keys": [key],
                "preferred_auth": "publickey",
            }


AuthCredential = Union[Password, PrivateKeyFile, PrivateKeyInline]


def credential_from_options(
    auth_type: str,
    password: Optional[str] = None,
    private_key_path: Optional[str] = None,
    private_key_data: Optional[str] = None,
    passphrase: Optional[str] = None,
) -> AuthCredential:
    """Build a credential from loosely-typed caller options.

    Args:
        auth_type: "password", "private_key_file" or "private_key_data"

    Raises:
        ValueError: On unknown auth type or missing required field
    """
    if auth_type == Password.auth_type:
        if not password:
            raise ValueError("Password required for password authentication")
        return Password(password=password)
    if auth_type == PrivateKeyFile.auth_type:
        if not private_key_path:
            raise ValueError("Private key path required")
        return PrivateKeyFile(path=private_key_path, passphrase=passphrase)
    if auth_type == PrivateKeyInline.auth_type:
        if not private_key_data:
            raise ValueError("Private key data required")
        return PrivateKeyInline(key_data=private_key_data, passphrase=passphrase)
    raise ValueError(f"Invalid authentication type: {auth_type}")
