"""Cross-platform keyboard input handling for the live screen."""

import sys
import threading
import time
from typing import Optional, Callable, Union
import logging

logger = logging.getLogger(__name__)

KeyCallback = Callable[[str], bool]


class KeyboardInputHandler:
    """Reads single keypresses in a background thread and forwards them to a callback."""

    def __init__(self, callback: KeyCallback, poll_interval: float = 0.05):
        """Initialize keyboard handler.

        Args:
            callback: Function that takes a key and returns True to continue, False to quit
            poll_interval: Delay between polls for input
        """
        self.callback = callback
        self.poll_interval = poll_interval
        self.stop_event = threading.Event()
        self.thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def start(self) -> None:
        """Start the keyboard input handler."""
        if self.running:
            return

        self.stop_event.clear()
        self.thread = threading.Thread(target=self._input_loop, daemon=True)
        self.thread.name = "KeyboardInputThread"
        self.thread.start()
        logger.info("Keyboard input handler started")

    def stop(self) -> None:
        """Stop the keyboard input handler."""
        self.stop_event.set()
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
        logger.info("Keyboard input handler stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the input loop ends. Returns False on timeout."""
        if self.thread is None:
            return True
        self.thread.join(timeout)
        return not self.thread.is_alive()

    def _input_loop(self) -> None:
        logger.debug("Starting keyboard input loop")
        while not self.stop_event.is_set():
            key = self._get_key()
            if key:
                logger.debug(f"Key detected: {key!r}")
                if not self._dispatch(key):
                    logger.info("Quit requested from keyboard")
                    break
            self.stop_event.wait(self.poll_interval)
        logger.debug("Keyboard input loop ended")

    def _dispatch(self, key: str) -> bool:
        """Run the callback for one key. A failing callback is logged and input continues."""
        try:
            return self.callback(key)
        except Exception as e:
            logger.error(f"Error handling key {key!r}: {e}", exc_info=True)
            return True

    def _get_key(self) -> Optional[str]:
        if sys.platform == "win32":
            return self._get_key_windows()
        return self._get_key_unix()

    def _get_key_windows(self) -> Optional[str]:
        import msvcrt
        if msvcrt.kbhit():
            key = msvcrt.getch().decode('utf-8', errors='ignore')
            return key.lower()
        return None

    def _get_key_unix(self) -> Optional[str]:
        import select
        import tty
        import termios

        if not select.select([sys.stdin], [], [], 0.1)[0]:
            return None

        # Raw mode only for the single read so rich keeps control of the terminal
        old_settings = termios.tcgetattr(sys.stdin)
        try:
            tty.setraw(sys.stdin.fileno())
            key = sys.stdin.read(1)
        finally:
            termios.tcsetattr(sys.stdin, termios.TCSADRAIN, old_settings)

        # Ctrl+C in raw mode arrives as a character instead of a signal
        if key == '\x03':
            return 'q'
        if key == '\r':
            return '\n'
        return key.lower()


class SimpleInputHandler(KeyboardInputHandler):
    """Line-based input for terminals where raw mode is unavailable."""

    def _input_loop(self) -> None:
        while not self.stop_event.is_set():
            try:
                user_input = input("> ").strip().lower()
            except EOFError:
                logger.info("Input closed, stopping simple input handler")
                break

            # Empty line acts as ENTER
            key = user_input[:1] or "\n"
            if not self._dispatch(key):
                break
            time.sleep(self.poll_interval)


def create_input_handler(callback: KeyCallback) -> Union[KeyboardInputHandler, SimpleInputHandler]:
    """Create the best available input handler for the current terminal.

    Args:
        callback: Function that takes a key and returns True to continue, False to quit

    Returns:
        A raw keypress handler on a TTY, otherwise a line-based handler
    """
    if sys.stdin is not None and sys.stdin.isatty():
        return KeyboardInputHandler(callback)
    logger.warning("stdin is not a terminal, falling back to line input")
    return SimpleInputHandler(callback)
