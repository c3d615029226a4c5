"""
PulseTrack

Editor activity heartbeats for a remote time-tracking service.
"""

__version__ = "0.1.0"
