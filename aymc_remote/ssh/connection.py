"""SSH connection and command execution.

One SSHClient owns one authenticated asyncssh connection. Commands are
sent verbatim (no quoting happens here) in three modes:
- run(): stdout/stderr captured, exit status reported but not enforced
- run_checked(): buffered stdout, non-zero exit raises CommandError
- stream()/run_streaming(): output yielded line by line as it arrives
"""

import asyncio
import codecs
import inspect
import logging
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Optional, Union

import asyncssh

from aymc_remote.models.remote import ConnectionTarget
from aymc_remote.ssh.credentials import AuthCredential
from aymc_remote.utils.errors import (
    AuthenticationError,
    ChannelError,
    CommandError,
    HandshakeError,
    KeyFileError,
    NotConnectedError,
    TransferError,
    TransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 30
STREAM_CHUNK_SIZE = 1024

LineCallback = Callable[[str], object]


@dataclass
class CommandResult:
    """Result of SSH command execution."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class LineAssembler:
    """Turns decoded text chunks into complete lines.

    A fragment without a trailing newline is held back until the next chunk
    completes it, so lines split across chunk boundaries come out whole.
    """

    def __init__(self):
        self._partial = ""

    def feed(self, text: str) -> List[str]:
        if not text:
            return []
        data = self._partial + text
        parts = data.split("\n")
        self._partial = parts.pop()
        return [part.rstrip("\r") for part in parts]

    def flush(self) -> List[str]:
        """Return the trailing unterminated fragment, if any."""
        if not self._partial:
            return []
        line = self._partial.rstrip("\r")
        self._partial = ""
        return [line]


class SSHClient:
    """Authenticated SSH session to a single host.

    Only SSHClient.connect() creates instances, so a client always wraps a
    live connection until disconnect(). The credential is not retained.

    Usage:
        ssh = await SSHClient.connect(target, Password("secret"))
        async with ssh:
            output = await ssh.run_checked("uname -a")
    """

    def __init__(
        self,
        target: ConnectionTarget,
        conn: asyncssh.SSHClientConnection,
        command_timeout: Optional[float] = None,
    ):
        self.target = target
        self.command_timeout = command_timeout
        self._conn: Optional[asyncssh.SSHClientConnection] = conn
        self._busy = asyncio.Lock()

    @property
    def host(self) -> str:
        return self.target.host

    @property
    def port(self) -> int:
        return self.target.port

    @classmethod
    async def connect(
        cls,
        target: ConnectionTarget,
        credential: AuthCredential,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        command_timeout: Optional[float] = None,
    ) -> "SSHClient":
        """Open transport, handshake and authenticate.

        Raises:
            TransportError: Host/port unreachable or connect timeout
            HandshakeError: SSH protocol negotiation failed
            AuthenticationError: Credential rejected or not confirmed
            KeyFileError: Inline key temp file could not be handled
        """
        logger.info(f"SSH connecting to {target} ({credential.auth_type})")

        conn = None
        try:
            with credential.auth_options() as auth:
                try:
                    conn = await asyncio.wait_for(
                        asyncssh.connect(
                            target.host,
                            port=target.port,
                            username=target.username,
                            known_hosts=None,
                            agent_path=None,
                            **auth,
                        ),
                        timeout=connect_timeout,
                    )
                except asyncio.TimeoutError as e:
                    raise TransportError(
                        f"SSH connection timeout ({connect_timeout}s)",
                        host=target.host,
                        port=target.port,
                    ) from e
                except asyncssh.PermissionDenied as e:
                    raise AuthenticationError(
                        f"SSH authentication failed ({credential.auth_type}): {e}",
                        host=target.host,
                        port=target.port,
                    ) from e
                except asyncssh.Error as e:
                    raise HandshakeError(
                        f"SSH handshake failed: {e}",
                        host=target.host,
                        port=target.port,
                    ) from e
                except OSError as e:
                    raise TransportError(
                        f"Could not connect to {target.host}:{target.port}: {e}",
                        host=target.host,
                        port=target.port,
                    ) from e
        except KeyFileError:
            # Key file cleanup failed after the connection was opened
            if conn is not None:
                conn.close()
            raise

        if conn.is_closed():
            conn.close()
            raise AuthenticationError(
                "SSH authentication not confirmed",
                host=target.host,
                port=target.port,
            )

        logger.info(f"SSH connected to {target}")
        return cls(target, conn, command_timeout=command_timeout)

    async def __aenter__(self) -> "SSHClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    def is_connected(self) -> bool:
        return self._conn is not None

    async def disconnect(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        conn.close()
        await conn.wait_closed()
        logger.info(f"SSH disconnected from {self.target}")

    def _require_conn(self) -> asyncssh.SSHClientConnection:
        if self._conn is None:
            raise NotConnectedError()
        return self._conn

    @asynccontextmanager
    async def _exclusive(self, command: Optional[str] = None):
        # One operation in flight per session
        if self._busy.locked():
            raise ChannelError(
                "Another operation is already running on this session",
                command=command,
            )
        async with self._busy:
            yield self._require_conn()

    async def run(
        self,
        command: str,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Execute a command and capture stdout and stderr separately.

        The exit status is reported, not enforced.

        Raises:
            ChannelError: The channel could not be opened or failed mid-way
        """
        if timeout is None:
            timeout = self.command_timeout

        async with self._exclusive(command) as conn:
            try:
                result = await asyncio.wait_for(
                    conn.run(command, check=False, errors="replace"),
                    timeout=timeout,
                )
            except asyncio.TimeoutError as e:
                raise ChannelError(
                    f"Command timeout ({timeout}s): {command[:50]}",
                    command=command,
                ) from e
            except (asyncssh.Error, OSError) as e:
                raise ChannelError(
                    f"Could not execute '{command}': {e}",
                    command=command,
                ) from e

        exit_code = result.exit_status if result.exit_status is not None else -1
        return CommandResult(
            stdout=_as_text(result.stdout),
            stderr=_as_text(result.stderr),
            exit_code=exit_code,
        )

    async def run_checked(
        self,
        command: str,
        timeout: Optional[float] = None,
    ) -> str:
        """Execute a command and return its stdout.

        Raises:
            CommandError: On non-zero exit, with the captured output attached
            ChannelError: The channel could not be opened or failed mid-way
        """
        result = await self.run(command, timeout)
        if not result.success:
            raise CommandError(
                f"Command failed with exit code {result.exit_code}: {result.stdout}",
                command=command,
                exit_code=result.exit_code,
                output=result.stdout,
                stderr=result.stderr,
            )
        return result.stdout

    async def stream(self, command: str) -> AsyncIterator[str]:
        """Yield output lines of a command as they are produced.

        stdout is read in STREAM_CHUNK_SIZE byte chunks and decoded with
        invalid sequences replaced. stderr is merged into the same stream.
        The exit status is not checked.

        Raises:
            ChannelError: The channel could not be opened or a read failed
        """
        async with self._exclusive(command) as conn:
            try:
                process = await conn.create_process(
                    command, encoding=None, stderr=asyncssh.STDOUT
                )
            except (asyncssh.Error, OSError) as e:
                raise ChannelError(
                    f"Could not execute '{command}': {e}", command=command
                ) from e

            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            lines = LineAssembler()
            try:
                while True:
                    try:
                        chunk = await process.stdout.read(STREAM_CHUNK_SIZE)
                    except (asyncssh.Error, OSError) as e:
                        raise ChannelError(
                            f"Error reading from channel: {e}", command=command
                        ) from e
                    if not chunk:
                        break
                    for line in lines.feed(decoder.decode(chunk)):
                        yield line

                for line in lines.feed(decoder.decode(b"", final=True)):
                    yield line
                for line in lines.flush():
                    yield line
            finally:
                process.close()
                await process.wait_closed()

    async def run_streaming(
        self,
        command: str,
        on_line: Optional[LineCallback] = None,
    ) -> List[str]:
        """Collect the streamed output lines of a command.

        Args:
            command: Command to execute
            on_line: Optional callback (sync or async) invoked per line
        """
        collected: List[str] = []
        async with aclosing(self.stream(command)) as lines:
            async for line in lines:
                collected.append(line)
                if on_line is not None:
                    ret = on_line(line)
                    if inspect.isawaitable(ret):
                        await ret
        return collected

    async def upload_content(
        self,
        content: Union[str, bytes],
        remote_path: str,
        mode: int = 0o644,
    ) -> None:
        """Write content to a remote file over SFTP.

        Raises:
            TransferError: The file could not be created or written
        """
        data = content.encode("utf-8") if isinstance(content, str) else content

        async with self._exclusive() as conn:
            try:
                async with conn.start_sftp_client() as sftp:
                    async with sftp.open(
                        remote_path,
                        "wb",
                        attrs=asyncssh.SFTPAttrs(permissions=mode),
                    ) as f:
                        await f.write(data)
            except (asyncssh.Error, OSError) as e:
                raise TransferError(
                    f"Could not write remote file {remote_path}: {e}",
                    remote_path=remote_path,
                ) from e

        logger.debug(f"Uploaded {len(data)} bytes to {remote_path}")

    async def upload_file(self, local_path: str, remote_path: str) -> None:
        """Upload a local file's content to a remote path."""
        try:
            with open(local_path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise TransferError(
                f"Could not read local file {local_path}: {e}",
                remote_path=remote_path,
            ) from e
        await self.upload_content(data, remote_path)


def _as_text(value: Union[str, bytes, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


@asynccontextmanager
async def open_session(
    target: ConnectionTarget,
    credential: AuthCredential,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    command_timeout: Optional[float] = None,
) -> AsyncIterator[SSHClient]:
    """Connect, yield the client and always disconnect afterwards."""
    client = await SSHClient.connect(
        target,
        credential,
        connect_timeout=connect_timeout,
        command_timeout=command_timeout,
    )
    try:
        yield client
    finally:
        await client.disconnect()


__all__ = [
    "CommandResult",
    "LineAssembler",
    "SSHClient",
    "open_session",
    "DEFAULT_CONNECT_TIMEOUT",
    "STREAM_CHUNK_SIZE",
]
