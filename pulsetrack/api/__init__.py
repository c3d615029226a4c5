"""Remote API client and HTTP transport."""

from pulsetrack.api.client import ApiClient
from pulsetrack.api.transport import HttpTransport, TransportResponse

__all__ = ["ApiClient", "HttpTransport", "TransportResponse"]
