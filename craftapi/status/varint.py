"""
Minecraft VarInt codec: 7 data bits per byte, least significant group first,
high bit set while more bytes follow.
"""
from __future__ import annotations

import asyncio
import io
from typing import BinaryIO

from ..errors import ProtocolError

MAX_VARINT_BYTES = 5
_SEGMENT_BITS = 0x7F
_CONTINUE_BIT = 0x80


def write_varint(stream: BinaryIO, value: int) -> int:
    """
    Write value to stream. The value is treated as unsigned 32-bit, so -1 is
    written as ff ff ff ff 0f. Returns the number of bytes written.
    """
    remaining = value & 0xFFFFFFFF
    out = bytearray()
    while True:
        temp = remaining & _SEGMENT_BITS
        remaining >>= 7
        if remaining:
            temp |= _CONTINUE_BIT
        out.append(temp)
        if not remaining:
            break
    stream.write(bytes(out))
    return len(out)


def encode_varint(value: int) -> bytes:
    buf = io.BytesIO()
    write_varint(buf, value)
    return buf.getvalue()


def read_varint(stream: BinaryIO) -> int:
    """Read one VarInt from a blocking file-like object."""
    result = 0
    count = 0
    while True:
        chunk = stream.read(1)
        if not chunk:
            if count == 0:
                raise ProtocolError("No data read")
            raise ProtocolError("Stream ended inside a VarInt")
        byte = chunk[0]
        result |= (byte & _SEGMENT_BITS) << (7 * count)
        count += 1
        if count > MAX_VARINT_BYTES:
            raise ProtocolError("VarInt is too big")
        if not byte & _CONTINUE_BIT:
            return result & 0xFFFFFFFF


async def read_varint_async(reader: asyncio.StreamReader) -> int:
    """Read one VarInt from an asyncio stream, one byte at a time."""
    result = 0
    count = 0
    while True:
        chunk = await reader.read(1)
        if not chunk:
            if count == 0:
                raise ProtocolError("No data read")
            raise ProtocolError("Stream ended inside a VarInt")
        byte = chunk[0]
        result |= (byte & _SEGMENT_BITS) << (7 * count)
        count += 1
        if count > MAX_VARINT_BYTES:
            raise ProtocolError("VarInt is too big")
        if not byte & _CONTINUE_BIT:
            return result & 0xFFFFFFFF
