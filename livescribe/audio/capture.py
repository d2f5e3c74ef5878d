"""Microphone capture producing fixed-size float audio frames."""

import pyaudio
import time
import logging
import threading
from typing import Iterator, List, Optional, Tuple

import numpy as np

from ..errors import CaptureError, PermissionDenied, UnsupportedEnvironment
from ..models.audio import AudioFrame, AudioStats


logger = logging.getLogger(__name__)


def list_input_devices() -> List[Tuple[int, str]]:
    """List all available input devices. Returns list of (index, name) tuples."""
    audio = pyaudio.PyAudio()
    try:
        devices = []
        for i in range(audio.get_device_count()):
            info = audio.get_device_info_by_index(i)
            if info.get("maxInputChannels", 0) > 0:
                devices.append((i, str(info.get("name", "Unknown"))))
        return devices
    finally:
        audio.terminate()


def check_audio_environment() -> None:
    """Verify that audio capture is possible in this runtime.

    Raises:
        UnsupportedEnvironment: PortAudio is unusable or there is no input device
    """
    try:
        devices = list_input_devices()
    except OSError as e:
        raise UnsupportedEnvironment(f"Audio capture is not available: {e}") from e
    if not devices:
        raise UnsupportedEnvironment("No microphone input device found")
    logger.info(f"Found {len(devices)} input device(s)")


class AudioCaptureSource:
    """Single-use microphone stream yielding fixed-size AudioFrames.

    `open()` acquires the device, `frames()` lazily yields frames until
    `close()` is called. An instance cannot be reopened once closed.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        frames_per_buffer: int = 1024,
        channels: int = 1,
        device_index: Optional[int] = None,
        close_timeout: float = 2.0,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            sample_rate: Audio sample rate in Hz
            frames_per_buffer: Samples per frame (1024 at 16kHz is ~64ms)
            channels: Number of audio channels (1 for mono)
            device_index: PyAudio input device, or None for the system default
            close_timeout: Seconds close() waits for an active reader to let go
        """
        self.sample_rate = sample_rate
        self.frames_per_buffer = frames_per_buffer
        self.channels = channels
        self.device_index = device_index
        self.close_timeout = close_timeout
        self.device_name = ""
        self.total_frames = 0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream: Optional[pyaudio.Stream] = None

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._released = threading.Event()
        self._opened = False
        self._reading = False
        self._iterated = False

    @property
    def is_open(self) -> bool:
        return self.stream is not None and not self._stop_event.is_set()

    def open(self) -> "AudioCaptureSource":
        """Acquire the microphone stream.

        Raises:
            PermissionDenied: The device could not be opened
            CaptureError: The source was already opened or closed
        """
        with self._lock:
            if self._opened or self._stop_event.is_set():
                raise CaptureError("Audio capture source cannot be reopened")
            self._opened = True

            try:
                self.pyaudio_instance = pyaudio.PyAudio()
                if self.device_index is not None:
                    info = self.pyaudio_instance.get_device_info_by_index(self.device_index)
                else:
                    info = self.pyaudio_instance.get_default_input_device_info()
                self.device_name = str(info.get("name", "Unknown"))

                self.stream = self.pyaudio_instance.open(
                    format=pyaudio.paFloat32,
                    channels=self.channels,
                    rate=self.sample_rate,
                    input=True,
                    input_device_index=self.device_index,
                    frames_per_buffer=self.frames_per_buffer,
                )
            except (OSError, IOError) as e:
                logger.error(f"Microphone access failed: {e}")
                self._release()
                raise PermissionDenied(f"Microphone access denied: {e}") from e

        logger.info(f"Audio stream opened on '{self.device_name}': {self.sample_rate}Hz, "
                    f"{self.frames_per_buffer} samples/frame")
        return self

    def frames(self) -> Iterator[AudioFrame]:
        """Yield captured frames until the source is closed.

        Raises:
            CaptureError: Not open, iterated twice, or a read failed
        """
        with self._lock:
            if self._iterated:
                raise CaptureError("Audio frames can only be iterated once")
            self._iterated = True
            if self._stop_event.is_set():
                return
            if self.stream is None:
                raise CaptureError("Audio capture source is not open")
            self._reading = True

        try:
            while not self._stop_event.is_set():
                try:
                    data = self.stream.read(self.frames_per_buffer, exception_on_overflow=False)
                except (OSError, IOError) as e:
                    if self._stop_event.is_set():
                        break
                    raise CaptureError(f"Audio read failed: {e}") from e

                samples = np.frombuffer(data, dtype=np.float32)
                if self.channels > 1:
                    samples = samples.reshape(-1, self.channels).mean(axis=1)

                self.total_frames += 1
                yield AudioFrame(
                    samples=samples,
                    sequence_number=self.total_frames,
                    timestamp=time.time(),
                    sample_rate=self.sample_rate,
                )
        finally:
            with self._lock:
                self._reading = False
                self._release()

    def close(self) -> None:
        """Stop capturing and release the device. Safe to call repeatedly."""
        with self._lock:
            self._stop_event.set()
            reading = self._reading
            if not reading:
                self._release()

        # The reader releases the stream itself once its current read returns
        if reading and not self._released.wait(self.close_timeout):
            logger.warning("Audio reader did not release the stream in time")

    def _release(self) -> None:
        """Release PyAudio resources. Caller holds the lock."""
        if self._released.is_set():
            return
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except OSError as e:
                logger.warning(f"Error closing audio stream: {e}")
            self.stream = None
        if self.pyaudio_instance is not None:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
        if self._opened:
            logger.info(f"Audio capture closed. Total frames: {self.total_frames}")
        self._released.set()

    def get_stats(self) -> AudioStats:
        """Get current capture statistics."""
        return AudioStats(
            is_open=self.is_open,
            sample_rate=self.sample_rate,
            frames_per_buffer=self.frames_per_buffer,
            total_frames=self.total_frames,
            device_name=self.device_name,
        )

    def __enter__(self) -> "AudioCaptureSource":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()
