"""Transcript storage for LiveScribe."""

from .transcript_store import TranscriptStore

__all__ = [
    "TranscriptStore",
]
