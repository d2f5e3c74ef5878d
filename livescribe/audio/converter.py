"""Conversion of captured float samples to the 16-bit PCM wire format."""

import logging
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

PCM16_SCALE = 32768.0
PCM16_MIN = -32768
PCM16_MAX = 32767

# Little-endian signed 16-bit, independent of host byte order
WIRE_DTYPE = np.dtype('<i2')


def float_to_pcm16(samples) -> np.ndarray:
    """Convert float samples in [-1.0, 1.0] to 16-bit signed integers.

    out[i] = clamp(round(in[i] * 32768), -32768, 32767). Out-of-range values
    are clamped and NaN maps to 0.
    """
    samples = np.atleast_1d(samples)
    converter = SampleConverter(samples.shape[0])
    return converter.convert(samples).copy()


class SampleConverter:
    """Converts frames of float samples into little-endian PCM16.

    Scratch and output buffers are allocated once for the configured frame
    size and reused for every frame of that size.
    """

    def __init__(self, frame_size: int = 1024):
        self.frame_size = frame_size
        self._allocate(frame_size)

    def _allocate(self, frame_size: int) -> None:
        self._scratch = np.empty(frame_size, dtype=np.float64)
        self._pcm = np.empty(frame_size, dtype=WIRE_DTYPE)

    def convert(self, samples) -> np.ndarray:
        """Convert one frame. The returned array is reused by the next call.

        Args:
            samples: Array, sequence or scalar of float samples

        Returns:
            View of the internal PCM16 buffer holding the converted frame
        """
        samples = np.atleast_1d(samples)
        count = samples.shape[0]
        if count != self._scratch.shape[0]:
            logger.debug(f"Frame size changed from {self._scratch.shape[0]} to {count}, reallocating")
            self._allocate(count)

        # float32 frames are cast straight into the scratch buffer
        np.multiply(samples, PCM16_SCALE, out=self._scratch, dtype=np.float64)
        np.nan_to_num(self._scratch, copy=False, nan=0.0, posinf=PCM16_MAX, neginf=PCM16_MIN)
        np.rint(self._scratch, out=self._scratch)
        np.clip(self._scratch, PCM16_MIN, PCM16_MAX, out=self._scratch)
        np.copyto(self._pcm, self._scratch, casting='unsafe')
        return self._pcm

    def to_wire(self, samples) -> bytes:
        """Convert one frame and return its wire bytes."""
        return self.convert(samples).tobytes()


def to_wire(samples, converter: Optional[SampleConverter] = None) -> bytes:
    """Convert float samples to little-endian PCM16 bytes."""
    samples = np.atleast_1d(samples)
    converter = converter or SampleConverter(samples.shape[0])
    return converter.to_wire(samples)
