"""Terminal user interface for LiveScribe."""

from .keyboard_input import KeyboardInputHandler, SimpleInputHandler, create_input_handler
from .live_screen import LiveScreen

__all__ = [
    "KeyboardInputHandler",
    "SimpleInputHandler",
    "create_input_handler",
    "LiveScreen",
]
