"""Session lifecycle: connect, authenticate, send/receive, disconnect.

A :class:`Session` is owned by exactly one caller. The protocol allows one
outstanding request at a time, so every :meth:`Session.request` sends a
packet and blocks until the reply carrying the same reply_id arrives.
"""
from __future__ import annotations

import logging
import struct
from contextlib import contextmanager
from enum import Enum
from typing import Generator, Optional, Union

from tenacity import retry, retry_if_exception_type, stop_after_attempt

from zkteco_sync.zk import codec
from zkteco_sync.zk.const import (
    CMD_ACK_OK,
    CMD_ACK_UNAUTH,
    CMD_AUTH,
    CMD_CONNECT,
    CMD_EXIT,
    USHRT_MAX,
    command_name,
)
from zkteco_sync.zk.exceptions import (
    AuthenticationError,
    NotConnectedError,
    ProtocolError,
    ZKConnectionError,
    ZKError,
    ZKTimeoutError,
)
from zkteco_sync.zk.models import DeviceEndpoint, DeviceProfile
from zkteco_sync.zk.transport import Transport, create_transport

logger = logging.getLogger(__name__)

# Stale replies tolerated while waiting for one reply_id
MAX_STALE_PACKETS = 32

ProfileSpec = Union[DeviceProfile, str, None]


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def make_commkey(password: int, session_id: int, ticks: int = 50) -> bytes:
    """Derive the 4-byte AUTH payload from the numeric password and session id."""
    key = int(password)
    k = 0
    for i in range(32):
        k = (k << 1 | 1) if key & (1 << i) else k << 1
    k = (k + session_id) & 0xFFFFFFFF
    b = struct.pack("<I", k)
    b = bytes((b[0] ^ ord("Z"), b[1] ^ ord("K"), b[2] ^ ord("S"), b[3] ^ ord("O")))
    lo, hi = struct.unpack("<HH", b)
    b = struct.pack("<HH", hi, lo)
    t = ticks & 0xFF
    return bytes((b[0] ^ t, b[1] ^ t, t, b[3] ^ t))


class Session:
    """Protocol context for one terminal connection."""

    def __init__(self, endpoint: DeviceEndpoint, transport: Transport, checksum: str = "additive"):
        self.endpoint = endpoint
        self.transport = transport
        self.checksum = checksum
        self.session_id = 0
        # First request of a session goes out with reply_id 0
        self.reply_id = USHRT_MAX - 1
        self.state = SessionState.DISCONNECTED
        self.profile: Optional[DeviceProfile] = None

    def __repr__(self) -> str:
        return (
            f"<Session {self.endpoint.ip}:{self.endpoint.port} "
            f"state={self.state.value} session_id={self.session_id}>"
        )

    @property
    def is_connected(self) -> bool:
        return self.state == SessionState.CONNECTED

    def ensure_connected(self) -> None:
        if self.state != SessionState.CONNECTED:
            raise NotConnectedError(
                f"No established session with {self.endpoint.ip}", state=self.state.value
            )

    def _next_reply_id(self) -> int:
        self.reply_id = (self.reply_id + 1) % USHRT_MAX
        return self.reply_id

    def request(self, command: int, payload: bytes = b"") -> codec.Packet:
        """Send one command and return its matching reply.

        A corrupt reply triggers one resend under the same reply_id. Any
        transport failure, or a second corrupt reply, drops the session to
        DISCONNECTED and propagates.
        """
        if self.state == SessionState.DISCONNECTED:
            raise NotConnectedError(
                f"Cannot send {command_name(command)} to {self.endpoint.ip}",
                command=command,
                state=self.state.value,
            )
        reply_id = self._next_reply_id()
        frame = codec.encode(command, payload, reply_id, self.session_id, self.checksum)
        try:
            return self._exchange(frame, command, reply_id)
        except (ZKConnectionError, ZKTimeoutError, ProtocolError):
            self.abort()
            raise

    @retry(
        stop=stop_after_attempt(2),
        retry=retry_if_exception_type(ProtocolError),
        reraise=True,
    )
    def _exchange(self, frame: bytes, command: int, reply_id: int) -> codec.Packet:
        self.transport.send(frame)
        return self._receive_matching(command, reply_id)

    def receive(self, reply_id: int, command: Optional[int] = None) -> codec.Packet:
        """Wait for a further packet for ``reply_id`` without sending anything."""
        try:
            return self._receive_matching(command, reply_id)
        except (ZKConnectionError, ZKTimeoutError, ProtocolError):
            self.abort()
            raise

    def _receive_matching(self, command: Optional[int], reply_id: int) -> codec.Packet:
        for _ in range(MAX_STALE_PACKETS):
            raw = self.transport.recv()
            try:
                packet = codec.decode(raw, self.checksum)
            except ProtocolError as e:
                logger.warning("Corrupt reply from %s: %s", self.endpoint.ip, e)
                raise ProtocolError(e.message, command=command, state=self.state.value) from e
            if packet.reply_id == reply_id:
                return packet
            logger.debug(
                "Discarding stale packet from %s: reply_id=%d, waiting for %d",
                self.endpoint.ip,
                packet.reply_id,
                reply_id,
            )
        raise ProtocolError(
            f"No reply for reply_id={reply_id} after {MAX_STALE_PACKETS} stale packets",
            command=command,
            state=self.state.value,
        )

    def abort(self) -> None:
        """Close the socket and mark the session DISCONNECTED."""
        if self.state != SessionState.DISCONNECTED:
            logger.info("Session to %s dropped", self.endpoint.ip)
        self.state = SessionState.DISCONNECTED
        self.transport.close()


def connect(
    endpoint: DeviceEndpoint,
    profile: ProfileSpec = None,
    transport: Optional[Transport] = None,
) -> Session:
    """Open an authenticated session, resolving the device profile once.

    ``profile`` is a :class:`DeviceProfile`, a catalogue name, or ``None`` /
    ``"auto"`` to detect it from the terminal. Returns a CONNECTED session or raises;
    no half-open session is ever returned.
    """
    from zkteco_sync.zk.profiles import get_profile, detect_profile

    explicit = get_profile(profile) if isinstance(profile, str) and profile != "auto" else profile
    checksum = explicit.checksum if isinstance(explicit, DeviceProfile) else "additive"

    session = Session(endpoint, transport or create_transport(endpoint), checksum)
    session.state = SessionState.CONNECTING
    try:
        session.transport.open()
        reply = session.request(CMD_CONNECT)
        session.session_id = reply.session_id
        if reply.command == CMD_ACK_UNAUTH:
            auth = session.request(CMD_AUTH, make_commkey(endpoint.password, session.session_id))
            if auth.command != CMD_ACK_OK:
                raise AuthenticationError(
                    f"Password rejected by {endpoint.ip}",
                    command=CMD_AUTH,
                    state=session.state.value,
                )
        elif reply.command != CMD_ACK_OK:
            raise ZKConnectionError(
                f"Handshake rejected by {endpoint.ip}: {command_name(reply.command)}",
                command=CMD_CONNECT,
                state=session.state.value,
            )
        session.state = SessionState.CONNECTED
        session.profile = explicit if isinstance(explicit, DeviceProfile) else detect_profile(session)
    except ZKError:
        session.abort()
        raise

    logger.info(
        "Connected to %s:%d (session_id=%d, profile=%s)",
        endpoint.ip,
        endpoint.port,
        session.session_id,
        session.profile.name,
    )
    return session


def disconnect(session: Session) -> None:
    """Send EXIT (best effort) and always close the socket."""
    try:
        if session.state == SessionState.CONNECTED:
            session.request(CMD_EXIT)
    except ZKError as e:
        logger.warning("EXIT to %s failed: %s", session.endpoint.ip, e)
    finally:
        session.state = SessionState.DISCONNECTED
        session.transport.close()
        logger.info("Disconnected from %s", session.endpoint.ip)


def send(session: Session, command: int, payload: bytes = b"") -> codec.Packet:
    """Issue one data command on an established session."""
    session.ensure_connected()
    return session.request(command, payload)


@contextmanager
def session_scope(
    endpoint: DeviceEndpoint,
    profile: ProfileSpec = None,
    transport: Optional[Transport] = None,
) -> Generator[Session, None, None]:
    """Context manager pairing :func:`connect` with a guaranteed :func:`disconnect`."""
    session = connect(endpoint, profile, transport)
    try:
        yield session
    finally:
        disconnect(session)
