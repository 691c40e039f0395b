"""Bulk transfer reassembly for buffers larger than one packet."""
from __future__ import annotations

import logging
import struct
from typing import Optional, Tuple

from zkteco_sync.zk.const import (
    CMD_ACK_OK,
    CMD_DATA,
    CMD_FREE_DATA,
    CMD_PREPARE_BUFFER,
    CMD_PREPARE_DATA,
    CMD_READ_BUFFER,
    command_name,
)
from zkteco_sync.zk.exceptions import PartialDataError, ProtocolError, ZKError
from zkteco_sync.zk.session import Session, send

logger = logging.getLogger(__name__)


def prepare_buffer(
    session: Session, command: int, fct: int = 0, ext: int = 0
) -> Tuple[int, Optional[bytes]]:
    """Ask the terminal to stage a bulk buffer.

    Returns ``(announced_size, inline_data)``. Small buffers come back inline
    in a single DATA reply; larger ones are only announced and must be read
    with :func:`read_chunk`.
    """
    reply = send(session, CMD_PREPARE_BUFFER, struct.pack("<bhii", 1, command, fct, ext))
    if reply.command == CMD_DATA:
        return len(reply.payload), reply.payload
    if reply.command != CMD_ACK_OK or len(reply.payload) < 5:
        raise ProtocolError(
            f"Unexpected reply to PREPARE_BUFFER: {command_name(reply.command)}",
            command=command,
            state=session.state.value,
        )
    return struct.unpack_from("<I", reply.payload, 1)[0], None


def read_chunk(session: Session, start: int, size: int) -> bytes:
    """Read ``size`` bytes at ``start`` of the staged buffer."""
    reply = send(session, CMD_READ_BUFFER, struct.pack("<ii", start, size))
    if reply.command == CMD_DATA:
        return reply.payload
    if reply.command != CMD_PREPARE_DATA or len(reply.payload) < 4:
        raise ProtocolError(
            f"Unexpected reply to READ_BUFFER: {command_name(reply.command)}",
            command=CMD_READ_BUFFER,
            offset=start,
        )

    announced = struct.unpack_from("<I", reply.payload)[0]
    data = bytearray()
    while len(data) < announced:
        fragment = session.receive(reply.reply_id, CMD_READ_BUFFER)
        if fragment.command != CMD_DATA:
            raise PartialDataError(
                f"Fragment stream ended with {command_name(fragment.command)}",
                received=len(data),
                expected=announced,
                command=CMD_READ_BUFFER,
                offset=start + len(data),
            )
        data += fragment.payload

    closing = session.receive(reply.reply_id, CMD_READ_BUFFER)
    if closing.command != CMD_ACK_OK:
        logger.warning(
            "Chunk at %d closed with %s instead of ACK_OK", start, command_name(closing.command)
        )
    return bytes(data)


def free_buffer(session: Session) -> None:
    """Release the terminal-side staged buffer."""
    send(session, CMD_FREE_DATA)


def read_buffer(session: Session, command: int, fct: int = 0, ext: int = 0) -> bytes:
    """Read a whole bulk buffer, issuing continuation reads until complete.

    Never returns fewer bytes than announced: a disconnect, timeout or
    protocol failure mid-transfer raises :class:`PartialDataError` and the
    partial buffer is discarded.
    """
    size, inline = prepare_buffer(session, command, fct, ext)
    if inline is not None:
        logger.debug("%s returned %d bytes inline", command_name(command), size)
        return inline

    max_chunk = session.transport.max_chunk
    buf = bytearray()
    try:
        while len(buf) < size:
            want = min(max_chunk, size - len(buf))
            piece = read_chunk(session, len(buf), want)
            if not piece:
                raise PartialDataError(
                    "Terminal returned an empty chunk",
                    received=len(buf),
                    expected=size,
                    command=command,
                    offset=len(buf),
                )
            buf += piece
    except PartialDataError:
        raise
    except ZKError as e:
        raise PartialDataError(
            f"Bulk read of {command_name(command)} aborted ({e.__class__.__name__})",
            received=len(buf),
            expected=size,
            command=command,
            state=session.state.value,
            offset=len(buf),
        ) from e

    if len(buf) != size:
        raise PartialDataError(
            "Terminal sent more data than announced",
            received=len(buf),
            expected=size,
            command=command,
        )

    free_buffer(session)
    logger.debug("Reassembled %d bytes for %s", size, command_name(command))
    return bytes(buf)
