"""Services layer for LiveScribe session logic."""

from .session_controller import SessionController
from .timer import SessionTimer, format_elapsed

__all__ = [
    "SessionController",
    "SessionTimer",
    "format_elapsed",
]
