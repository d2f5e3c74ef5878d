"""Audio-related data models."""

from dataclasses import dataclass

import numpy as np


@dataclass
class AudioFrame:
    """A fixed-size block of mono float samples in [-1.0, 1.0]."""
    samples: np.ndarray
    sequence_number: int
    timestamp: float  # Time when this frame was captured
    sample_rate: int = 16000

    @property
    def duration_ms(self) -> float:
        return len(self.samples) * 1000.0 / self.sample_rate


@dataclass
class AudioStats:
    """Audio capture statistics."""
    is_open: bool
    sample_rate: int
    frames_per_buffer: int
    total_frames: int
    device_name: str = ""
