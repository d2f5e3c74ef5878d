"""Error types raised by the live transcription pipeline."""


class LiveScribeError(Exception):
    """Base class for all LiveScribe errors."""


class CaptureError(LiveScribeError):
    """Audio capture failed or was used incorrectly."""


class PermissionDenied(CaptureError):
    """Microphone access was refused by the operating system."""


class TransportError(LiveScribeError):
    """Streaming connection failed or was used incorrectly."""


class ConnectionFailed(TransportError):
    """The streaming connection could not be opened."""


class ConnectionLost(TransportError):
    """An open streaming connection dropped unexpectedly."""


class UnsupportedEnvironment(LiveScribeError):
    """Audio capture or streaming is not available in this runtime."""
