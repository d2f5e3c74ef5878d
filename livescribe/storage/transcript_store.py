"""File storage for exported transcripts."""

import logging
from datetime import date
from pathlib import Path
from typing import List, Optional


logger = logging.getLogger(__name__)


class TranscriptStore:
    """Saves transcripts as dated text files under the data directory."""

    def __init__(self, data_dir: str = "./data"):
        """Initialize transcript store with data directory.

        Args:
            data_dir: Base directory for storing all data
        """
        self.data_dir = Path(data_dir)
        self.transcripts_dir = self.data_dir / "transcripts"

        self._ensure_directories()

        logger.info(f"TranscriptStore initialized with data_dir: {self.data_dir}")

    def _ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        self.transcripts_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Ensured directory exists: {self.transcripts_dir}")

    def _next_path(self, day: date) -> Path:
        base_name = f"transcription-{day.isoformat()}"
        path = self.transcripts_dir / f"{base_name}.txt"
        suffix = 1
        while path.exists():
            path = self.transcripts_dir / f"{base_name}-{suffix}.txt"
            suffix += 1
        return path

    def save(self, text: str, day: Optional[date] = None) -> str:
        """Save transcript text to a new file.

        Args:
            text: Transcript to write
            day: Date used in the file name (defaults to today)

        Returns:
            Full path to saved transcript file

        Raises:
            ValueError: If the transcript is empty or whitespace only
        """
        if not text or not text.strip():
            raise ValueError("Transcript is empty, nothing to save")

        path = self._next_path(day or date.today())
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            logger.error(f"Error saving transcript: {e}")
            raise

        logger.info(f"Transcript saved: {path} ({len(text)} characters)")
        return str(path)

    def list_transcripts(self) -> List[str]:
        """List saved transcript files, newest first."""
        files = [p for p in self.transcripts_dir.glob("transcription-*.txt") if p.is_file()]
        files.sort(key=lambda p: (p.stat().st_mtime, p.name), reverse=True)
        logger.debug(f"Found {len(files)} transcripts")
        return [str(p) for p in files]
