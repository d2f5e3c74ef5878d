"""Transcript data models."""

from dataclasses import dataclass
from typing import Tuple

SEGMENT_SEPARATOR = "\n"


@dataclass(frozen=True)
class TranscriptSnapshot:
    """Point-in-time copy of the transcript."""
    segments: Tuple[str, ...] = ()
    partial: str = ""

    @property
    def text(self) -> str:
        """Finalized transcript text."""
        return SEGMENT_SEPARATOR.join(self.segments)

    @property
    def display_text(self) -> str:
        """Finalized text followed by the live partial on its own line."""
        if not self.partial:
            return self.text
        if not self.segments:
            return self.partial
        return self.text + SEGMENT_SEPARATOR + self.partial

    @property
    def is_empty(self) -> bool:
        return not self.segments and not self.partial
