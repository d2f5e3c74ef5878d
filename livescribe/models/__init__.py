"""Data models for the LiveScribe application."""

from .audio import AudioFrame, AudioStats
from .events import (
    TranscriptEvent,
    TranscriptKind,
    TOPIC_TRANSCRIPT_UPDATED,
    TOPIC_SESSION_STATE,
    TOPIC_SESSION_ELAPSED,
)
from .session import SessionState, ConnectionState, RecordingSession
from .transcript import TranscriptSnapshot, SEGMENT_SEPARATOR
from .ui import SessionStatus

__all__ = [
    "AudioFrame",
    "AudioStats",
    "TranscriptEvent",
    "TranscriptKind",
    "TOPIC_TRANSCRIPT_UPDATED",
    "TOPIC_SESSION_STATE",
    "TOPIC_SESSION_ELAPSED",
    "SessionState",
    "ConnectionState",
    "RecordingSession",
    "TranscriptSnapshot",
    "SEGMENT_SEPARATOR",
    "SessionStatus",
]
