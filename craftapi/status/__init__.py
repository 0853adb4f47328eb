"""
Minecraft server status package.

    from craftapi.status import probe_server_status
"""

from .client import (
    DEFAULT_PORT,
    ProbeState,
    ServerStatusClient,
    build_handshake,
    build_packet,
    probe_server_status,
)
from .varint import encode_varint, read_varint, read_varint_async, write_varint

__all__ = [
    "DEFAULT_PORT",
    "ProbeState",
    "ServerStatusClient",
    "build_handshake",
    "build_packet",
    "encode_varint",
    "probe_server_status",
    "read_varint",
    "read_varint_async",
    "write_varint",
]
