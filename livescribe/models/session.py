"""Session and connection state models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class SessionState(Enum):
    """Lifecycle states of a recording session."""
    IDLE = "idle"
    STARTING = "starting"
    RECORDING = "recording"
    STOPPING = "stopping"
    ERRORED = "errored"


class ConnectionState(Enum):
    """Lifecycle states of the streaming connection."""
    CLOSED = "closed"
    CONNECTING = "connecting"
    OPEN = "open"
    ERRORED = "errored"


@dataclass
class RecordingSession:
    """One contiguous start-to-stop recording attempt."""
    session_id: int
    state: SessionState = SessionState.STARTING
    elapsed_seconds: int = 0
    started_at: datetime = field(default_factory=datetime.now)
    error_message: Optional[str] = None
