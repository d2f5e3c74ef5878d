"""UI-related data models."""

from dataclasses import dataclass, field
from typing import Optional

from .session import SessionState
from .transcript import TranscriptSnapshot


@dataclass(frozen=True)
class SessionStatus:
    """Status snapshot of the live transcription session for display."""
    state: SessionState = SessionState.IDLE
    elapsed_seconds: int = 0
    elapsed_display: str = "00:00"
    error_message: Optional[str] = None
    transcript: TranscriptSnapshot = field(default_factory=TranscriptSnapshot)
    frames_sent: int = 0
    frames_dropped: int = 0
    events_received: int = 0
    unsupported: bool = False

    @property
    def is_recording(self) -> bool:
        return self.state is SessionState.RECORDING

    @property
    def is_busy(self) -> bool:
        return self.state in (SessionState.STARTING, SessionState.RECORDING)
