"""Packet framing and checksum validation.

A packet is an 8-byte header of four little-endian u16 fields (command,
checksum, session_id, reply_id) followed by the payload. Over TCP each packet
is additionally wrapped in an 8-byte envelope carrying two magic words and
the packet length; see :func:`wrap_tcp` / :func:`unwrap_tcp_header`.

The checksum algorithm differs between firmware generations, so it is a
pluggable strategy looked up by name from :data:`CHECKSUMS`.
"""
from __future__ import annotations

import struct
from typing import Callable, Dict, NamedTuple

from zkteco_sync.zk.const import (
    HEADER_SIZE,
    MACHINE_PREPARE_DATA_1,
    MACHINE_PREPARE_DATA_2,
    TCP_ENVELOPE_SIZE,
    USHRT_MAX,
)
from zkteco_sync.zk.exceptions import ProtocolError

_HEADER = struct.Struct("<4H")
_ENVELOPE = struct.Struct("<HHI")


class Packet(NamedTuple):
    command: int
    payload: bytes
    reply_id: int
    session_id: int = 0


def _words(data: bytes):
    if len(data) % 2:
        data += b"\x00"
    for (word,) in struct.iter_unpack("<H", data):
        yield word


def additive_checksum(data: bytes) -> int:
    """16-bit one's-complement sum of little-endian words, inverted."""
    total = 0
    for word in _words(data):
        total += word
        if total > USHRT_MAX:
            total -= USHRT_MAX
    total = -total - 1
    while total < 0:
        total += USHRT_MAX
    return total


def xor_checksum(data: bytes) -> int:
    """XOR of little-endian words, inverted."""
    total = 0
    for word in _words(data):
        total ^= word
    return ~total & USHRT_MAX


CHECKSUMS: Dict[str, Callable[[bytes], int]] = {
    "additive": additive_checksum,
    "xor": xor_checksum,
}


def get_checksum(name: str) -> Callable[[bytes], int]:
    try:
        return CHECKSUMS[name]
    except KeyError:
        raise ValueError(f"Unknown checksum scheme: {name}. Available: {list(CHECKSUMS)}")


def encode(
    command: int,
    payload: bytes = b"",
    reply_id: int = 0,
    session_id: int = 0,
    checksum: str = "additive",
) -> bytes:
    """Build a packet with its checksum filled in."""
    calc = get_checksum(checksum)
    body = _HEADER.pack(command, 0, session_id, reply_id) + payload
    return _HEADER.pack(command, calc(body), session_id, reply_id) + payload


def decode(data: bytes, checksum: str = "additive") -> Packet:
    """Parse and validate a packet. Raises ProtocolError on any corruption."""
    if len(data) < HEADER_SIZE:
        raise ProtocolError(f"Packet too short: {len(data)} bytes")
    command, received, session_id, reply_id = _HEADER.unpack_from(data)
    payload = bytes(data[HEADER_SIZE:])
    expected = get_checksum(checksum)(_HEADER.pack(command, 0, session_id, reply_id) + payload)
    if received != expected:
        raise ProtocolError(
            f"Checksum mismatch: got 0x{received:04X}, expected 0x{expected:04X}",
            command=command,
        )
    return Packet(command, payload, reply_id, session_id)


def wrap_tcp(packet: bytes) -> bytes:
    """Prefix a packet with the TCP envelope."""
    return _ENVELOPE.pack(MACHINE_PREPARE_DATA_1, MACHINE_PREPARE_DATA_2, len(packet)) + packet


def unwrap_tcp_header(envelope: bytes) -> int:
    """Validate a TCP envelope and return the length of the packet it announces."""
    if len(envelope) != TCP_ENVELOPE_SIZE:
        raise ProtocolError(f"Truncated TCP envelope: {len(envelope)} bytes")
    magic1, magic2, length = _ENVELOPE.unpack(envelope)
    if magic1 != MACHINE_PREPARE_DATA_1 or magic2 != MACHINE_PREPARE_DATA_2:
        raise ProtocolError(f"Bad TCP envelope magic: 0x{magic1:04X} 0x{magic2:04X}")
    return length
