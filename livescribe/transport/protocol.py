"""Text framing of inbound transcript messages.

The backend sends UTF-8 text frames of the form::

    PARTIAL: <text>     supersedes the previous partial
    FINAL: <text>       commits a transcript segment

Outbound audio is raw binary PCM and carries no envelope.
"""

import logging
from typing import Optional

from ..models.events import TranscriptEvent, TranscriptKind

logger = logging.getLogger(__name__)

PARTIAL_TAG = "PARTIAL:"
FINAL_TAG = "FINAL:"

_TAGS = (
    (PARTIAL_TAG, TranscriptKind.PARTIAL),
    (FINAL_TAG, TranscriptKind.FINAL),
)


def parse_transcript_message(message: str) -> Optional[TranscriptEvent]:
    """Parse one inbound text frame into a TranscriptEvent.

    The tag and a single following space are stripped; the rest of the
    payload is kept verbatim.

    Returns:
        TranscriptEvent, or None if the message carries no known tag
    """
    for tag, kind in _TAGS:
        if message.startswith(tag):
            text = message[len(tag):]
            if text.startswith(" "):
                text = text[1:]
            return TranscriptEvent(kind, text)
    return None


def format_transcript_message(event: TranscriptEvent) -> str:
    """Render a TranscriptEvent in its wire form."""
    tag = PARTIAL_TAG if event.kind is TranscriptKind.PARTIAL else FINAL_TAG
    return f"{tag} {event.text}"
