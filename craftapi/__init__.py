"""
craft-api: Minecraft server status probing and multi-platform mod search.

    from craftapi import probe_server_status, default_aggregator
"""

from .errors import (
    ConnectTimeoutError,
    CraftApiError,
    InvalidArgumentError,
    MalformedResponseError,
    ProtocolError,
    ServerUnreachableError,
    UpstreamUnavailableError,
)
from .services import PlatformAggregator, default_aggregator
from .status import ServerStatusClient, probe_server_status

__version__ = "0.1.0"

__all__ = [
    "ConnectTimeoutError",
    "CraftApiError",
    "InvalidArgumentError",
    "MalformedResponseError",
    "PlatformAggregator",
    "ProtocolError",
    "ServerStatusClient",
    "ServerUnreachableError",
    "UpstreamUnavailableError",
    "default_aggregator",
    "probe_server_status",
]
