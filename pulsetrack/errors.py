"""Exceptions raised inside PulseTrack.

None of these escape to the host: they are captured where they occur and
turned into log output or an error envelope.
"""


class PulseError(Exception):
    """Base class for PulseTrack errors."""


class TransportError(PulseError):
    """A request failed below the API envelope (connection, timeout, abort)."""
