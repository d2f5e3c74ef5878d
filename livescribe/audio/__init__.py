"""Audio capture and sample conversion module."""

from .capture import AudioCaptureSource, check_audio_environment, list_input_devices
from .converter import SampleConverter, float_to_pcm16, to_wire

__all__ = [
    'AudioCaptureSource',
    'check_audio_environment',
    'list_input_devices',
    'SampleConverter',
    'float_to_pcm16',
    'to_wire',
]
