"""Socket transports: TCP stream framing and UDP datagrams."""
from __future__ import annotations

import logging
import socket
from abc import ABC, abstractmethod
from typing import Optional

from zkteco_sync.zk import codec
from zkteco_sync.zk.const import MAX_CHUNK_TCP, MAX_CHUNK_UDP, TCP_ENVELOPE_SIZE
from zkteco_sync.zk.exceptions import ZKConnectionError, ZKTimeoutError
from zkteco_sync.zk.models import DeviceEndpoint, TransportKind

logger = logging.getLogger(__name__)

UDP_RECV_SIZE = 65535


class Transport(ABC):
    """Moves whole packets to and from a terminal."""

    #: Largest chunk the reassembler should request per READ_BUFFER.
    max_chunk: int = MAX_CHUNK_TCP

    @abstractmethod
    def open(self) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    @abstractmethod
    def send(self, packet: bytes) -> None:
        ...

    @abstractmethod
    def recv(self) -> bytes:
        """Return the next inner packet, blocking at most one timeout."""


class SocketTransport(Transport):
    def __init__(self, endpoint: DeviceEndpoint):
        self.endpoint = endpoint
        self._sock: Optional[socket.socket] = None

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def close(self) -> None:
        if self._sock is None:
            return
        try:
            self._sock.close()
        except OSError as e:
            logger.debug("Ignoring error while closing socket to %s: %s", self.endpoint.ip, e)
        finally:
            self._sock = None

    def _require_sock(self) -> socket.socket:
        if self._sock is None:
            raise ZKConnectionError(f"Socket to {self.endpoint.ip} is closed")
        return self._sock


class TCPTransport(SocketTransport):
    max_chunk = MAX_CHUNK_TCP

    def open(self) -> None:
        try:
            self._sock = socket.create_connection(
                (self.endpoint.ip, self.endpoint.port), timeout=self.endpoint.timeout
            )
        except socket.timeout as e:
            raise ZKTimeoutError(f"Timed out connecting to {self.endpoint.ip}:{self.endpoint.port}") from e
        except OSError as e:
            raise ZKConnectionError(f"Cannot connect to {self.endpoint.ip}:{self.endpoint.port}: {e}") from e

    def send(self, packet: bytes) -> None:
        sock = self._require_sock()
        try:
            sock.sendall(codec.wrap_tcp(packet))
        except socket.timeout as e:
            raise ZKTimeoutError(f"Send to {self.endpoint.ip} timed out") from e
        except OSError as e:
            raise ZKConnectionError(f"Send to {self.endpoint.ip} failed: {e}") from e

    def recv(self) -> bytes:
        length = codec.unwrap_tcp_header(self._read_exact(TCP_ENVELOPE_SIZE))
        return self._read_exact(length)

    def _read_exact(self, size: int) -> bytes:
        sock = self._require_sock()
        buf = bytearray()
        while len(buf) < size:
            try:
                chunk = sock.recv(size - len(buf))
            except socket.timeout as e:
                raise ZKTimeoutError(f"No reply from {self.endpoint.ip} within {self.endpoint.timeout}s") from e
            except OSError as e:
                raise ZKConnectionError(f"Receive from {self.endpoint.ip} failed: {e}") from e
            if not chunk:
                raise ZKConnectionError(f"Connection closed by {self.endpoint.ip}")
            buf += chunk
        return bytes(buf)


class UDPTransport(SocketTransport):
    max_chunk = MAX_CHUNK_UDP

    def open(self) -> None:
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.settimeout(self.endpoint.timeout)
            sock.connect((self.endpoint.ip, self.endpoint.port))
        except OSError as e:
            raise ZKConnectionError(f"Cannot open UDP socket to {self.endpoint.ip}: {e}") from e
        self._sock = sock

    def send(self, packet: bytes) -> None:
        sock = self._require_sock()
        try:
            sock.send(packet)
        except OSError as e:
            raise ZKConnectionError(f"Send to {self.endpoint.ip} failed: {e}") from e

    def recv(self) -> bytes:
        sock = self._require_sock()
        try:
            return sock.recv(UDP_RECV_SIZE)
        except socket.timeout as e:
            raise ZKTimeoutError(f"No reply from {self.endpoint.ip} within {self.endpoint.timeout}s") from e
        except OSError as e:
            raise ZKConnectionError(f"Receive from {self.endpoint.ip} failed: {e}") from e


def create_transport(endpoint: DeviceEndpoint) -> Transport:
    """Build the transport matching the endpoint's transport kind."""
    if endpoint.transport == TransportKind.UDP:
        return UDPTransport(endpoint)
    return TCPTransport(endpoint)
