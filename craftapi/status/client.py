"""
Server list ping: handshake + status request over a raw TCP connection.

Each probe opens its own connection, performs one request/response exchange
and closes the socket on every exit path.
"""
from __future__ import annotations

import asyncio
import json
import logging
import struct
from enum import Enum
from typing import Optional

from ..config import STATUS_TIMEOUT_SECONDS
from ..errors import (
    ConnectTimeoutError,
    InvalidArgumentError,
    MalformedResponseError,
    ProtocolError,
    ServerUnreachableError,
)
from ..schemas import ServerStatusResult
from .varint import encode_varint, read_varint_async

log = logging.getLogger(__name__)

DEFAULT_PORT = 25565
MIN_PORT = 0
MAX_PORT = 65535

# -1 lets the server answer with its own protocol version
PROTOCOL_VERSION_ANY = -1
NEXT_STATE_STATUS = 1
HANDSHAKE_PACKET_ID = 0x00
STATUS_REQUEST_PACKET_ID = 0x00
STATUS_RESPONSE_PACKET_ID = 0x00


class ProbeState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    AWAITING_STATUS = "awaiting_status"
    COMPLETED = "completed"
    FAILED = "failed"


def build_packet(packet_id: int, data: bytes = b"") -> bytes:
    """Frame a packet as varint(length) + varint(packet id) + data."""
    body = encode_varint(packet_id) + data
    return encode_varint(len(body)) + body


def build_handshake(address: bytes, port: int, next_state: int = NEXT_STATE_STATUS) -> bytes:
    # Address length is a single byte, not a VarInt
    data = (
        encode_varint(PROTOCOL_VERSION_ANY)
        + bytes([len(address)])
        + address
        + struct.pack(">H", port)
        + encode_varint(next_state)
    )
    return build_packet(HANDSHAKE_PACKET_ID, data)


class ServerStatusClient:
    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout: float = STATUS_TIMEOUT_SECONDS,
        read_timeout: Optional[float] = None,
    ):
        if isinstance(port, bool) or not isinstance(port, int):
            raise InvalidArgumentError(f"Port must be an integer, got {port!r}")
        if port < MIN_PORT or port > MAX_PORT:
            raise InvalidArgumentError(
                f"Port is out of range (must be between {MIN_PORT} and {MAX_PORT})"
            )
        try:
            address = host.encode("ascii")
        except UnicodeEncodeError as exc:
            raise InvalidArgumentError(f"Server address must be ASCII: {host!r}") from exc
        if not address or len(address) > 255:
            raise InvalidArgumentError("Server address must be between 1 and 255 bytes")

        self.host = host
        self.port = port
        self.timeout = timeout
        self.read_timeout = read_timeout
        self.state = ProbeState.DISCONNECTED
        self._address = address

    async def get_status(self) -> ServerStatusResult:
        reader, writer = await self._connect()
        try:
            self._transition(ProbeState.HANDSHAKING)
            writer.write(build_handshake(self._address, self.port))

            self._transition(ProbeState.AWAITING_STATUS)
            writer.write(build_packet(STATUS_REQUEST_PACKET_ID))
            await writer.drain()

            if self.read_timeout is None:
                result = await self._read_status(reader)
            else:
                try:
                    result = await asyncio.wait_for(self._read_status(reader), self.read_timeout)
                except asyncio.TimeoutError as exc:
                    raise ConnectTimeoutError(
                        f"Status response from {self.host}:{self.port} timed out"
                    ) from exc
            self._transition(ProbeState.COMPLETED)
            return result
        except BaseException:
            self._transition(ProbeState.FAILED)
            raise
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as exc:
                log.debug("Error closing connection to %s:%s: %s", self.host, self.port, exc)

    async def _connect(self):
        self._transition(ProbeState.CONNECTING)
        try:
            return await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), self.timeout
            )
        except asyncio.TimeoutError as exc:
            self._transition(ProbeState.FAILED)
            raise ConnectTimeoutError("Connection to host timed out") from exc
        except OSError as exc:
            self._transition(ProbeState.FAILED)
            raise ServerUnreachableError(
                f"Could not connect to {self.host}:{self.port}: {exc}"
            ) from exc

    async def _read_status(self, reader: asyncio.StreamReader) -> ServerStatusResult:
        await read_varint_async(reader)  # frame length, not validated
        packet_id = await read_varint_async(reader)
        if packet_id != STATUS_RESPONSE_PACKET_ID:
            log.warning(
                "Unexpected packet id %#x from %s:%s", packet_id, self.host, self.port
            )
            return ServerStatusResult.unknown(self.host, self.port)

        length = await read_varint_async(reader)
        try:
            payload = await reader.readexactly(length)
        except asyncio.IncompleteReadError as exc:
            raise ProtocolError(
                f"Expected {length} payload bytes, got {len(exc.partial)}"
            ) from exc

        try:
            text = payload.decode("utf-8").replace("\r\n", "\n")
            data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedResponseError(f"Invalid status payload: {exc}") from exc

        if data is None:
            return ServerStatusResult.unknown(self.host, self.port)
        if not isinstance(data, dict):
            raise MalformedResponseError("Status payload is not a JSON object")
        return ServerStatusResult(host=self.host, port=self.port, raw=data)

    def _transition(self, state: ProbeState) -> None:
        log.debug("%s:%s %s -> %s", self.host, self.port, self.state.value, state.value)
        self.state = state


async def probe_server_status(
    host: str,
    port: int = DEFAULT_PORT,
    timeout: float = STATUS_TIMEOUT_SECONDS,
    read_timeout: Optional[float] = None,
) -> ServerStatusResult:
    """
    Ping a Minecraft server and return its status JSON.
    Raises InvalidArgumentError, ConnectTimeoutError, ServerUnreachableError,
    ProtocolError or MalformedResponseError.
    """
    client = ServerStatusClient(host, port, timeout=timeout, read_timeout=read_timeout)
    return await client.get_status()
