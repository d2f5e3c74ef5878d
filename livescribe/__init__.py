"""LiveScribe - live microphone transcription over a streaming backend."""

__version__ = "0.1.0"
