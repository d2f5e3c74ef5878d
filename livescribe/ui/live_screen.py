"""Terminal screen showing the live transcript and session status."""

import time
import threading
import logging
from typing import Optional

import pyperclip
from pubsub import pub
from rich.console import Console
from rich.panel import Panel
from rich.layout import Layout
from rich.live import Live
from rich.text import Text
from rich.align import Align

from ..models.events import TOPIC_TRANSCRIPT_UPDATED, TOPIC_SESSION_STATE, TOPIC_SESSION_ELAPSED
from ..models.session import SessionState
from ..models.transcript import TranscriptSnapshot
from ..models.ui import SessionStatus
from ..services.session_controller import SessionController
from ..storage.transcript_store import TranscriptStore
from .keyboard_input import create_input_handler


logger = logging.getLogger(__name__)

PLACEHOLDER = "Press SPACE to start recording. Your transcript will appear here."


class LiveScreen:
    """Rich terminal interface driven by session and transcript updates."""

    def __init__(self, controller: SessionController, store: TranscriptStore, console: Optional[Console] = None):
        """Initialize live screen.

        Args:
            controller: Session controller receiving start/stop/clear commands
            store: Transcript store used by the save key
            console: Rich console to render to
        """
        self.controller = controller
        self.store = store
        self.console = console or Console()

        self._lock = threading.Lock()
        self._status = controller.status()
        self._transcript = self._status.transcript
        self._elapsed_display = self._status.elapsed_display
        self._notice = ""

        self.running = False
        self.input_handler = None

    # Pub/sub listeners, called from the controller thread

    def _on_session_state(self, status: SessionStatus) -> None:
        with self._lock:
            self._status = status
            self._elapsed_display = status.elapsed_display

    def _on_transcript_updated(self, snapshot: TranscriptSnapshot) -> None:
        with self._lock:
            self._transcript = snapshot

    def _on_session_elapsed(self, seconds: int, display: str) -> None:
        with self._lock:
            self._elapsed_display = display

    def subscribe(self) -> None:
        pub.subscribe(self._on_session_state, TOPIC_SESSION_STATE)
        pub.subscribe(self._on_transcript_updated, TOPIC_TRANSCRIPT_UPDATED)
        pub.subscribe(self._on_session_elapsed, TOPIC_SESSION_ELAPSED)

    def unsubscribe(self) -> None:
        pub.unsubscribe(self._on_session_state, TOPIC_SESSION_STATE)
        pub.unsubscribe(self._on_transcript_updated, TOPIC_TRANSCRIPT_UPDATED)
        pub.unsubscribe(self._on_session_elapsed, TOPIC_SESSION_ELAPSED)

    # Rendering

    def create_layout(self) -> Layout:
        """Create the main UI layout."""
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main", ratio=1),
            Layout(name="footer", size=3)
        )
        return layout

    def render_header(self, status: SessionStatus, elapsed: str) -> Panel:
        title = Text("LiveScribe", style="bold blue")
        if status.state is SessionState.RECORDING:
            indicator = ("● RECORDING", "bold red")
        elif status.state is SessionState.STARTING:
            indicator = ("◌ CONNECTING", "bold yellow")
        elif status.state is SessionState.ERRORED:
            indicator = ("✖ ERROR", "bold red")
        else:
            indicator = ("■ STOPPED", "bold yellow")

        header_text = Text.assemble(title, "  |  ", indicator, "  |  ", (elapsed, "bold"))
        return Panel(Align.center(header_text), style="bright_blue")

    def render_main(self, status: SessionStatus, transcript: TranscriptSnapshot) -> Panel:
        """Render the transcript panel, or the error panel that replaces it."""
        if status.error_message and (status.unsupported or status.state is SessionState.ERRORED):
            return Panel(
                Text(status.error_message, style="bold red"),
                title="Error",
                border_style="red"
            )

        if status.state is SessionState.STARTING and transcript.is_empty:
            body = Text("Connecting...", style="yellow italic")
        elif transcript.is_empty:
            body = Text(PLACEHOLDER, style="dim white italic")
        else:
            body = Text(transcript.text, style="white")
            if transcript.partial:
                if transcript.text:
                    body.append("\n")
                body.append(transcript.partial, style="dim")

        subtitle = None
        if status.frames_sent or status.frames_dropped:
            subtitle = f"frames sent {status.frames_sent}, dropped {status.frames_dropped}"
        return Panel(body, title="Transcript", subtitle=subtitle, border_style="blue")

    def render_footer(self, notice: str) -> Panel:
        controls = Text.assemble(
            ("Controls: ", "bold"),
            ("SPACE", "bold green"), " Start/Stop  ",
            ("S", "bold yellow"), " Stop  ",
            ("C", "bold blue"), " Clear  ",
            ("W", "bold cyan"), " Save  ",
            ("Y", "bold magenta"), " Copy  ",
            ("Q", "bold red"), " Quit"
        )
        if notice:
            controls.append(f"   {notice}", style="italic")
        return Panel(Align.center(controls), style="bright_black")

    def update_display(self, layout: Layout) -> None:
        with self._lock:
            status = self._status
            transcript = self._transcript
            elapsed = self._elapsed_display
            notice = self._notice

        layout["header"].update(self.render_header(status, elapsed))
        layout["main"].update(self.render_main(status, transcript))
        layout["footer"].update(self.render_footer(notice))

    # Input

    def _set_notice(self, notice: str) -> None:
        with self._lock:
            self._notice = notice

    def save_transcript(self) -> Optional[str]:
        """Save the finalized transcript, reporting the outcome in the footer."""
        try:
            path = self.store.save(self.controller.aggregator.text)
        except ValueError as e:
            self._set_notice(str(e))
            return None
        except OSError as e:
            logger.error(f"Failed to save transcript: {e}")
            self._set_notice(f"Save failed: {e}")
            return None
        self._set_notice(f"Saved {path}")
        return path

    def copy_transcript(self) -> bool:
        """Copy the finalized transcript to the system clipboard."""
        text = self.controller.aggregator.text
        if not text.strip():
            self._set_notice("Nothing to copy")
            return False
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            logger.warning(f"Clipboard unavailable: {e}")
            self._set_notice("Clipboard unavailable")
            return False
        logger.debug("Copied transcript to clipboard")
        self._set_notice("Copied to clipboard")
        return True

    def handle_key_input(self, key: str) -> bool:
        """Handle keyboard input. Returns True to continue, False to quit."""
        logger.debug(f"Handling key input: {key!r}")
        if key == 'q':
            logger.info("Quit key pressed")
            self.running = False
            return False

        self._set_notice("")
        if key in (' ', '\n'):
            if self.controller.status().is_busy:
                self.controller.stop()
            else:
                self.controller.start()
        elif key == 's':
            if not self.controller.stop():
                self._set_notice("Not recording")
        elif key == 'c':
            if not self.controller.clear():
                self._set_notice("Stop recording before clearing")
        elif key == 'w':
            self.save_transcript()
        elif key == 'y':
            self.copy_transcript()
        else:
            logger.debug(f"Unhandled key: {key!r}")
        return True

    def run(self, refresh_per_second: int = 10) -> None:
        """Run the screen until the user quits."""
        self.running = True
        layout = self.create_layout()
        self.subscribe()

        self.input_handler = create_input_handler(self.handle_key_input)
        self.input_handler.start()

        try:
            with Live(layout, console=self.console, refresh_per_second=refresh_per_second, screen=True):
                while self.running and self.input_handler.running:
                    self.update_display(layout)
                    time.sleep(1.0 / refresh_per_second)
        finally:
            self.cleanup()

    def cleanup(self) -> None:
        """Stop input handling and detach from updates."""
        self.running = False
        if self.input_handler:
            self.input_handler.stop()
        self.unsubscribe()
        logger.info("LiveScreen cleanup completed")
