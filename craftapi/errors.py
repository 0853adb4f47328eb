"""
Error taxonomy shared by the status prober and the platform adapters.
"""
from __future__ import annotations


class CraftApiError(Exception):
    """Base error for craftapi failures."""


class InvalidArgumentError(CraftApiError, ValueError):
    """Malformed input to a constructor or call; never retried."""


class ConnectTimeoutError(CraftApiError, TimeoutError):
    """A bounded network step did not finish in time."""


class ServerUnreachableError(ConnectTimeoutError):
    """
    The target refused the connection or could not be resolved. Counts as a
    connect timeout for callers that only handle TimeoutError.
    """


class ProtocolError(CraftApiError):
    """Unexpected or truncated bytes on the wire."""


class MalformedResponseError(CraftApiError):
    """The status payload was not a JSON object."""


class UpstreamUnavailableError(CraftApiError):
    """A platform HTTP call failed or returned nothing usable."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
