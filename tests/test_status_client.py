import asyncio
import json
import struct
from unittest.mock import patch

import pytest

from craftapi.errors import (
    ConnectTimeoutError,
    InvalidArgumentError,
    MalformedResponseError,
    ProtocolError,
    ServerUnreachableError,
)
from craftapi.status.client import (
    ProbeState,
    ServerStatusClient,
    build_handshake,
    build_packet,
    probe_server_status,
)
from craftapi.status.varint import encode_varint, read_varint_async

STATUS = {
    "version": {"name": "1.20.4", "protocol": 765},
    "players": {"max": 20, "online": 3},
    "description": {"text": "A Minecraft Server"},
    "favicon": "data:image/png;base64,AAAA",
}


def status_response(payload: bytes, packet_id: int = 0) -> bytes:
    return build_packet(packet_id, encode_varint(len(payload)) + payload)


async def start_fake_server(response: bytes, received: list, reply: bool = True):
    """Minecraft server stand-in: reads handshake + status request, answers once."""

    async def handle(reader, writer):
        try:
            for _ in range(2):
                length = await read_varint_async(reader)
                received.append(await reader.readexactly(length))
            if reply:
                writer.write(response)
                await writer.drain()
            else:
                await reader.read()
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, port


def test_build_handshake_layout():
    packet = build_handshake(b"localhost", 25565)
    body = (
        b"\x00"  # packet id
        + b"\xff\xff\xff\xff\x0f"  # protocol version -1
        + bytes([9]) + b"localhost"
        + struct.pack(">H", 25565)
        + b"\x01"  # next state: status
    )
    assert packet == encode_varint(len(body)) + body


def test_build_status_request():
    assert build_packet(0) == b"\x01\x00"


@pytest.mark.parametrize("port", [-1, 65536, 100000])
def test_port_out_of_range_raises(port):
    with pytest.raises(InvalidArgumentError):
        ServerStatusClient("localhost", port)


def test_non_integer_port_raises():
    with pytest.raises(InvalidArgumentError):
        ServerStatusClient("localhost", "25565")


@pytest.mark.parametrize("host", ["", "mïnecraft.example", "a" * 256])
def test_bad_address_raises(host):
    with pytest.raises(InvalidArgumentError):
        ServerStatusClient(host, 25565)


@pytest.mark.asyncio
async def test_out_of_range_port_never_connects():
    with patch("craftapi.status.client.asyncio.open_connection") as open_connection:
        with pytest.raises(InvalidArgumentError):
            await probe_server_status("localhost", 70000)
    open_connection.assert_not_called()


@pytest.mark.asyncio
async def test_probe_returns_status_json():
    received = []
    server, port = await start_fake_server(
        status_response(json.dumps(STATUS).encode("utf-8")), received
    )
    async with server:
        client = ServerStatusClient("127.0.0.1", port)
        result = await client.get_status()

    assert result.known
    assert result.raw == STATUS
    assert result.version == {"name": "1.20.4", "protocol": 765}
    assert result.players["online"] == 3
    assert result.favicon == "data:image/png;base64,AAAA"
    assert client.state == ProbeState.COMPLETED

    handshake, request = received
    assert handshake[0] == 0x00
    assert handshake.endswith(struct.pack(">H", port) + b"\x01")
    assert request == b"\x00"


@pytest.mark.asyncio
async def test_crlf_is_normalized():
    received = []
    payload = b'{"description":\r\n{"text":"line"}}'
    server, port = await start_fake_server(status_response(payload), received)
    async with server:
        result = await probe_server_status("127.0.0.1", port)
    assert result.description == {"text": "line"}


@pytest.mark.asyncio
async def test_unexpected_packet_id_returns_unknown():
    received = []
    server, port = await start_fake_server(status_response(b"{}", packet_id=0x01), received)
    async with server:
        result = await probe_server_status("127.0.0.1", port)
    assert not result.known
    assert result.raw == {"status": "Unknown", "ip": "127.0.0.1", "name": "Unknown response"}


@pytest.mark.asyncio
async def test_null_payload_returns_unknown():
    received = []
    server, port = await start_fake_server(status_response(b"null"), received)
    async with server:
        result = await probe_server_status("127.0.0.1", port)
    assert not result.known


@pytest.mark.asyncio
async def test_invalid_json_raises():
    received = []
    server, port = await start_fake_server(status_response(b"{not json"), received)
    async with server:
        with pytest.raises(MalformedResponseError):
            await probe_server_status("127.0.0.1", port)


@pytest.mark.asyncio
async def test_non_object_json_raises():
    received = []
    server, port = await start_fake_server(status_response(b"[1, 2]"), received)
    async with server:
        with pytest.raises(MalformedResponseError):
            await probe_server_status("127.0.0.1", port)


@pytest.mark.asyncio
async def test_short_payload_raises_protocol_error():
    received = []
    truncated = build_packet(0, encode_varint(50) + b"{}")
    server, port = await start_fake_server(truncated, received)
    async with server:
        with pytest.raises(ProtocolError):
            await probe_server_status("127.0.0.1", port)


@pytest.mark.asyncio
async def test_closed_without_reply_raises_protocol_error():
    received = []
    server, port = await start_fake_server(b"", received)
    async with server:
        with pytest.raises(ProtocolError):
            await probe_server_status("127.0.0.1", port)


@pytest.mark.asyncio
async def test_connect_timeout_is_bounded():
    async def hang(*args, **kwargs):
        await asyncio.sleep(10)

    loop = asyncio.get_running_loop()
    with patch("craftapi.status.client.asyncio.open_connection", side_effect=hang):
        started = loop.time()
        client = ServerStatusClient("192.0.2.1", 25565, timeout=0.1)
        with pytest.raises(ConnectTimeoutError):
            await client.get_status()
    assert loop.time() - started < 2
    assert client.state == ProbeState.FAILED


@pytest.mark.asyncio
async def test_refused_connection_raises_unreachable():
    server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()

    with pytest.raises(ServerUnreachableError):
        await probe_server_status("127.0.0.1", port)

    with pytest.raises(TimeoutError):
        await probe_server_status("127.0.0.1", port)

    with pytest.raises(ConnectTimeoutError):
        await probe_server_status("127.0.0.1", port)


@pytest.mark.asyncio
async def test_read_timeout_raises():
    received = []
    server, port = await start_fake_server(b"", received, reply=False)
    async with server:
        with pytest.raises(ConnectTimeoutError):
            await probe_server_status("127.0.0.1", port, read_timeout=0.2)
