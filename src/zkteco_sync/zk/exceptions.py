"""Error taxonomy for terminal communication and record decoding."""
from __future__ import annotations

from typing import Optional

from zkteco_sync.zk.const import command_name


class ZKError(Exception):
    """Base error carrying optional command, session state and byte offset."""

    def __init__(
        self,
        message: str,
        command: Optional[int] = None,
        state: Optional[str] = None,
        offset: Optional[int] = None,
    ):
        self.message = message
        self.command = command
        self.state = state
        self.offset = offset
        super().__init__(self._format())

    def _format(self) -> str:
        extras = []
        if self.command is not None:
            extras.append(f"command={command_name(self.command)}")
        if self.state is not None:
            extras.append(f"state={self.state}")
        if self.offset is not None:
            extras.append(f"offset={self.offset}")
        if not extras:
            return self.message
        return f"{self.message} ({', '.join(extras)})"


class ZKConnectionError(ZKError, ConnectionError):
    """Socket cannot be opened, was lost, or the handshake was rejected."""


class AuthenticationError(ZKConnectionError):
    """The terminal rejected the comm password."""


class ZKTimeoutError(ZKError, TimeoutError):
    """No reply arrived within the socket timeout."""


class ProtocolError(ZKError):
    """Frame is malformed or its checksum does not match."""


class PartialDataError(ZKError):
    """A bulk transfer was aborted before the announced size arrived."""

    def __init__(self, message: str, received: int = 0, expected: int = 0, **kwargs):
        self.received = received
        self.expected = expected
        super().__init__(f"{message}: received {received} of {expected} bytes", **kwargs)


class NotConnectedError(ZKError):
    """A data operation was attempted without an established session."""


class RecordDecodeError(ZKError):
    """A single record slice could not be decoded (non-fatal, collected)."""

    def __init__(self, message: str, kind: str = "", offset: Optional[int] = None):
        self.kind = kind
        super().__init__(f"{kind} slice skipped: {message}" if kind else message, offset=offset)
