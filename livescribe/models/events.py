"""Transcript events and pub/sub topic names."""

from dataclasses import dataclass
from enum import Enum

# Pub/sub topics published for the presentation layer
TOPIC_TRANSCRIPT_UPDATED = "transcript_updated"
TOPIC_SESSION_STATE = "session_state"
TOPIC_SESSION_ELAPSED = "session_elapsed"


class TranscriptKind(Enum):
    """Kind of inbound transcript event."""
    PARTIAL = "PARTIAL"
    FINAL = "FINAL"


@dataclass(frozen=True)
class TranscriptEvent:
    """A transcript update received from the backend.

    A PARTIAL supersedes the previous partial; a FINAL commits a segment.
    """
    kind: TranscriptKind
    text: str

    @classmethod
    def partial(cls, text: str) -> "TranscriptEvent":
        return cls(TranscriptKind.PARTIAL, text)

    @classmethod
    def final(cls, text: str) -> "TranscriptEvent":
        return cls(TranscriptKind.FINAL, text)

    @property
    def is_final(self) -> bool:
        return self.kind is TranscriptKind.FINAL
