"""Transcript aggregator reconciling partial and final transcript events.

Finalized segments are append-only and joined with a newline; the single
live partial is replaced by every PARTIAL event and cleared by a FINAL.
Every change is published on the `transcript_updated` topic with a
`TranscriptSnapshot` so the presentation layer never reads live state.
"""

import logging
import threading
from typing import List, Optional

from pubsub import pub

from ..models.events import TranscriptEvent, TOPIC_TRANSCRIPT_UPDATED
from ..models.transcript import TranscriptSnapshot, SEGMENT_SEPARATOR

logger = logging.getLogger(__name__)


class TranscriptAggregator:
    """Maintains the authoritative transcript: finalized segments plus one live partial."""

    def __init__(self, topic: Optional[str] = TOPIC_TRANSCRIPT_UPDATED):
        """Initialize transcript aggregator.

        Args:
            topic: Topic to publish snapshots on, or None to disable publishing
        """
        self.topic = topic
        self._segments: List[str] = []
        self._partial = ""
        self.lock = threading.RLock()

    @property
    def text(self) -> str:
        """Finalized transcript text."""
        with self.lock:
            return SEGMENT_SEPARATOR.join(self._segments)

    @property
    def partial(self) -> str:
        with self.lock:
            return self._partial

    @property
    def segments(self) -> List[str]:
        with self.lock:
            return list(self._segments)

    @property
    def display_text(self) -> str:
        return self.snapshot().display_text

    def snapshot(self) -> TranscriptSnapshot:
        with self.lock:
            return TranscriptSnapshot(segments=tuple(self._segments), partial=self._partial)

    def on_event(self, event: TranscriptEvent) -> None:
        """Apply one inbound transcript event."""
        if event.is_final:
            self.on_final(event.text)
        else:
            self.on_partial(event.text)

    def on_partial(self, text: str) -> None:
        """Replace the live partial (last write wins)."""
        with self.lock:
            self._partial = text
            snapshot = self.snapshot()
        self._publish(snapshot)

    def on_final(self, text: str) -> None:
        """Commit a segment and clear the live partial."""
        with self.lock:
            self._segments.append(text)
            self._partial = ""
            snapshot = self.snapshot()
        logger.info(f"Finalized segment {len(snapshot.segments)}: '{text[:50]}'")
        self._publish(snapshot)

    def reset(self) -> None:
        """Clear the finalized transcript and the live partial."""
        with self.lock:
            self._segments.clear()
            self._partial = ""
            snapshot = self.snapshot()
        logger.info("Transcript cleared")
        self._publish(snapshot)

    def _publish(self, snapshot: TranscriptSnapshot) -> None:
        # Published outside the lock so listeners never run while holding it
        if self.topic:
            pub.sendMessage(self.topic, snapshot=snapshot)
