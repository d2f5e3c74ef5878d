"""Streaming transport to the transcription backend."""

from .protocol import parse_transcript_message, format_transcript_message, PARTIAL_TAG, FINAL_TAG
from .stream import StreamTransport

__all__ = [
    "StreamTransport",
    "parse_transcript_message",
    "format_transcript_message",
    "PARTIAL_TAG",
    "FINAL_TAG",
]
