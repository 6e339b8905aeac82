"""Exclusive-access holder for the single active SSH session.

A host application keeps at most one session open. SessionSlot owns it and
serializes access: callers take the session with ``acquire()`` and release
it when the block exits, so no two operations overlap on the connection.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from aymc_remote.models.remote import ConnectionTarget
from aymc_remote.ssh.connection import DEFAULT_CONNECT_TIMEOUT, SSHClient
from aymc_remote.ssh.credentials import AuthCredential
from aymc_remote.utils.errors import NotConnectedError

logger = logging.getLogger(__name__)


class SessionSlot:
    """Holds zero or one SSHClient behind an asyncio lock."""

    def __init__(self) -> None:
        self._client: Optional[SSHClient] = None
        self._lock = asyncio.Lock()

    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected()

    @property
    def target(self) -> Optional[ConnectionTarget]:
        return self._client.target if self._client else None

    async def connect(
        self,
        target: ConnectionTarget,
        credential: AuthCredential,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        command_timeout: Optional[float] = None,
    ) -> SSHClient:
        """Open a new session, replacing (and closing) any previous one.

        On failure the slot keeps its previous state and the error propagates.
        """
        async with self._lock:
            client = await SSHClient.connect(
                target,
                credential,
                connect_timeout=connect_timeout,
                command_timeout=command_timeout,
            )
            previous, self._client = self._client, client
            if previous is not None:
                logger.info(f"Replacing SSH session to {previous.target}")
                await previous.disconnect()
            return client

    async def disconnect(self) -> bool:
        """Close the held session.

        Returns:
            False if there was no session to close
        """
        async with self._lock:
            if self._client is None:
                return False
            client, self._client = self._client, None
            await client.disconnect()
            return True

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[SSHClient]:
        """Take exclusive use of the session for the duration of the block.

        Raises:
            NotConnectedError: No session is open
        """
        async with self._lock:
            if self._client is None or not self._client.is_connected():
                raise NotConnectedError()
            yield self._client
