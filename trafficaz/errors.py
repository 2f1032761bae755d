"""Error taxonomy for the voice subsystem.

Every error here is recovered locally: the dispatcher or the handler that
catches it says something to the user and moves on.
"""

from enum import Enum


class TrafficAZError(Exception):
    """Base class for all TrafficAZ errors."""


class PermissionDenied(TrafficAZError):
    pass


class MicrophonePermissionDenied(PermissionDenied):
    pass


class LocationPermissionDenied(PermissionDenied):
    pass


class RecognitionError(TrafficAZError):
    """The speech engine failed while listening."""


class DataSourceError(TrafficAZError):
    """A weather, traffic or location lookup failed."""


class ErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    RECOGNITION = "recognition"
    HANDLER = "handler"
