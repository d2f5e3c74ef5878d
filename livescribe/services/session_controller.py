"""Session controller: the state machine driving a live transcription session.

Capture, transport, timer and caller threads never touch session state
directly. They post typed messages onto a single mailbox that one
controller thread consumes in order, which makes that thread the only
mutator of the session and of the transcript. Every producer message
carries the id of the session it belongs to; messages for a session that
has since been stopped or replaced are discarded.
"""

import logging
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, NamedTuple, Optional

from pubsub import pub

from ..audio.capture import AudioCaptureSource, check_audio_environment
from ..audio.converter import SampleConverter
from ..config import LiveScribeConfig
from ..errors import CaptureError, TransportError, UnsupportedEnvironment, LiveScribeError
from ..models.audio import AudioFrame
from ..models.events import TranscriptEvent, TOPIC_SESSION_STATE, TOPIC_SESSION_ELAPSED
from ..models.session import SessionState, RecordingSession
from ..models.ui import SessionStatus
from ..transcription.aggregator import TranscriptAggregator
from ..transport.stream import StreamTransport
from .timer import SessionTimer, format_elapsed

logger = logging.getLogger(__name__)

CaptureFactory = Callable[[], AudioCaptureSource]
TransportFactory = Callable[[Callable[[TranscriptEvent], None], Callable[[TransportError], None]], StreamTransport]


class _Command(NamedTuple):
    """A public API call waiting for the controller thread's answer."""
    name: str
    future: Future


class _CaptureOpened(NamedTuple):
    session_id: int


class _CaptureFailed(NamedTuple):
    session_id: int
    error: LiveScribeError


class _ConnectionOpened(NamedTuple):
    session_id: int


class _TransportFailed(NamedTuple):
    session_id: int
    error: LiveScribeError


class _FrameCaptured(NamedTuple):
    session_id: int
    frame: AudioFrame


class _TranscriptReceived(NamedTuple):
    session_id: int
    event: TranscriptEvent


class _TimerTick(NamedTuple):
    session_id: int


@dataclass
class _LiveSession:
    """Resources exclusively owned by one recording session."""
    record: RecordingSession
    capture: AudioCaptureSource
    transport: StreamTransport
    timer: SessionTimer
    capture_open: bool = False
    connection_open: bool = False
    pump_thread: Optional[threading.Thread] = None
    released: bool = False

    @property
    def session_id(self) -> int:
        return self.record.session_id


class SessionController:
    """Orchestrates capture, streaming and the elapsed timer for one session at a time."""

    def __init__(
        self,
        aggregator: TranscriptAggregator,
        endpoint: str,
        capture_factory: CaptureFactory,
        transport_factory: TransportFactory,
        environment_check: Optional[Callable[[], None]] = None,
        tick_interval: float = 1.0,
        frames_per_buffer: int = 1024,
        command_timeout: float = 30.0,
    ):
        """Initialize the controller and start its message loop.

        Args:
            aggregator: Transcript state updated from inbound events
            endpoint: Streaming URL passed to StreamTransport.connect()
            capture_factory: Creates a fresh AudioCaptureSource per session
            transport_factory: Creates a fresh StreamTransport per session from
                              (on_event, on_error) callbacks
            environment_check: Raises UnsupportedEnvironment when capture is impossible
            tick_interval: Seconds between elapsed-time ticks
            frames_per_buffer: Expected frame size, used to preallocate conversion buffers
            command_timeout: Seconds start()/stop()/clear() wait for the controller thread
        """
        self.aggregator = aggregator
        self.endpoint = endpoint
        self.capture_factory = capture_factory
        self.transport_factory = transport_factory
        self.environment_check = environment_check
        self.tick_interval = tick_interval
        self.command_timeout = command_timeout
        self.converter = SampleConverter(frames_per_buffer)

        self._state = SessionState.IDLE
        self._state_changed = threading.Condition()
        self._session: Optional[_LiveSession] = None
        self._session_counter = 0
        self._elapsed_seconds = 0
        self._error_message: Optional[str] = None
        self._unsupported = False

        # Per-session counters
        self._frames_sent = 0
        self._frames_dropped = 0
        self._events_received = 0

        self._mailbox: "queue.Queue" = queue.Queue()
        self._handlers = {
            _Command: self._on_command,
            _CaptureOpened: self._on_capture_opened,
            _CaptureFailed: self._on_session_failure,
            _ConnectionOpened: self._on_connection_opened,
            _TransportFailed: self._on_session_failure,
            _FrameCaptured: self._on_frame,
            _TranscriptReceived: self._on_transcript,
            _TimerTick: self._on_tick,
        }
        self._shut_down = False
        self._loop_thread = threading.Thread(target=self._run, daemon=True)
        self._loop_thread.name = "SessionControllerThread"
        self._loop_thread.start()

    @classmethod
    def from_config(cls, config: LiveScribeConfig, aggregator: TranscriptAggregator) -> "SessionController":
        """Create a controller wired to PyAudio capture and the websocket transport."""
        sample_rate = config.get('audio.sample_rate', 16000)
        frames_per_buffer = config.get('audio.frames_per_buffer', 1024)
        channels = config.get('audio.channels', 1)
        device_index = config.get('audio.device_index')

        connect_timeout = config.get('transport.connect_timeout_seconds', 10.0)
        heartbeat = config.get('transport.heartbeat_seconds')
        max_pending_frames = config.get('transport.max_pending_frames', 64)

        logger.info(f"Audio settings: {sample_rate}Hz, {frames_per_buffer} samples/frame, {channels} channels")

        def capture_factory() -> AudioCaptureSource:
            return AudioCaptureSource(
                sample_rate=sample_rate,
                frames_per_buffer=frames_per_buffer,
                channels=channels,
                device_index=device_index,
            )

        def transport_factory(on_event, on_error) -> StreamTransport:
            return StreamTransport(
                on_event=on_event,
                on_error=on_error,
                connect_timeout=connect_timeout,
                heartbeat=heartbeat,
                max_pending_frames=max_pending_frames,
            )

        return cls(
            aggregator=aggregator,
            endpoint=config.get_stream_url(),
            capture_factory=capture_factory,
            transport_factory=transport_factory,
            environment_check=check_audio_environment,
            tick_interval=config.get('session.tick_interval_seconds', 1.0),
            frames_per_buffer=frames_per_buffer,
        )

    # Public API

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed_seconds

    @property
    def elapsed_display(self) -> str:
        return format_elapsed(self._elapsed_seconds)

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def session(self) -> Optional[RecordingSession]:
        live = self._session
        return live.record if live else None

    def mount(self) -> bool:
        """Check the runtime environment before any start is attempted.

        Returns:
            False if capture is unsupported; every later start() is then rejected
        """
        return self._command("mount")

    def start(self) -> bool:
        """Begin a new session. Returns False if rejected in the current state."""
        return self._command("start")

    def stop(self) -> bool:
        """End the current session, keeping the transcript. Returns False if idle."""
        return self._command("stop")

    def clear(self) -> bool:
        """Discard the transcript. Returns False while a session is active."""
        return self._command("clear")

    def status(self) -> SessionStatus:
        """Get a snapshot of the session for display."""
        return SessionStatus(
            state=self._state,
            elapsed_seconds=self._elapsed_seconds,
            elapsed_display=format_elapsed(self._elapsed_seconds),
            error_message=self._error_message,
            transcript=self.aggregator.snapshot(),
            frames_sent=self._frames_sent,
            frames_dropped=self._frames_dropped,
            events_received=self._events_received,
            unsupported=self._unsupported,
        )

    def wait_for_state(self, *states: SessionState, timeout: Optional[float] = None) -> bool:
        """Block until the session is in one of `states`.

        Returns:
            True if reached, False on timeout
        """
        with self._state_changed:
            return self._state_changed.wait_for(lambda: self._state in states, timeout)

    def shutdown(self, timeout: float = 10.0) -> None:
        """Stop any active session and terminate the controller thread."""
        if self._shut_down:
            return
        logger.info("Shutting down SessionController...")
        if self._state is not SessionState.IDLE:
            self.stop()
        self._shut_down = True
        self._mailbox.put(None)
        if self._loop_thread is not threading.current_thread():
            self._loop_thread.join(timeout)
            if self._loop_thread.is_alive():
                logger.warning("Controller thread did not stop cleanly")
        logger.info("SessionController shutdown complete")

    def __enter__(self) -> "SessionController":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    # Message loop

    def _post(self, message) -> None:
        self._mailbox.put(message)

    def _command(self, name: str) -> bool:
        if threading.current_thread() is self._loop_thread:
            return self._handle_command(name)
        if self._shut_down:
            logger.warning(f"Ignoring '{name}' after shutdown")
            return False
        future: Future = Future()
        self._post(_Command(name, future))
        return future.result(timeout=self.command_timeout)

    def _run(self) -> None:
        while True:
            message = self._mailbox.get()
            if message is None:
                logger.debug("Controller thread received sentinel, exiting.")
                break
            handler = self._handlers[type(message)]
            try:
                handler(message)
            except Exception as e:
                logger.error(f"Unhandled exception handling {type(message).__name__}: {e}", exc_info=True)
                if isinstance(message, _Command) and not message.future.done():
                    message.future.set_exception(e)

    def _on_command(self, command: _Command) -> None:
        command.future.set_result(self._handle_command(command.name))

    def _handle_command(self, name: str) -> bool:
        if name == "start":
            return self._do_start()
        if name == "stop":
            return self._do_stop()
        if name == "clear":
            return self._do_clear()
        if name == "mount":
            return self._do_mount()
        raise ValueError(f"Unknown command: {name}")

    def _current(self, session_id: int) -> Optional[_LiveSession]:
        live = self._session
        if live is None or live.session_id != session_id:
            return None
        return live

    def _set_state(self, state: SessionState) -> None:
        with self._state_changed:
            previous = self._state
            self._state = state
            if self._session is not None:
                self._session.record.state = state
            self._state_changed.notify_all()
        logger.info(f"Session state: {previous.value} -> {state.value}")
        pub.sendMessage(TOPIC_SESSION_STATE, status=self.status())

    def _publish_elapsed(self) -> None:
        pub.sendMessage(
            TOPIC_SESSION_ELAPSED,
            seconds=self._elapsed_seconds,
            display=format_elapsed(self._elapsed_seconds),
        )

    # Commands

    def _do_mount(self) -> bool:
        if self.environment_check is None:
            return True
        try:
            self.environment_check()
        except UnsupportedEnvironment as e:
            logger.error(f"Unsupported environment: {e}")
            self._unsupported = True
            self._error_message = str(e)
            pub.sendMessage(TOPIC_SESSION_STATE, status=self.status())
            return False
        logger.info("Environment check passed")
        return True

    def _do_start(self) -> bool:
        if self._unsupported:
            logger.warning(f"Start rejected: {self._error_message}")
            return False
        if self._state not in (SessionState.IDLE, SessionState.ERRORED):
            logger.warning(f"Start rejected in state {self._state.value}")
            return False

        self._session_counter += 1
        session_id = self._session_counter
        self._elapsed_seconds = 0
        self._error_message = None
        self._frames_sent = 0
        self._frames_dropped = 0
        self._events_received = 0

        capture = self.capture_factory()
        transport = self.transport_factory(
            lambda event: self._post(_TranscriptReceived(session_id, event)),
            lambda error: self._post(_TransportFailed(session_id, error)),
        )
        timer = SessionTimer(lambda: self._post(_TimerTick(session_id)), interval=self.tick_interval)
        live = _LiveSession(
            record=RecordingSession(session_id=session_id),
            capture=capture,
            transport=transport,
            timer=timer,
        )
        self._session = live
        self._set_state(SessionState.STARTING)
        self._publish_elapsed()

        timer.start()
        for target, name in ((self._open_capture, "CaptureOpenThread"),
                             (self._connect_transport, "TransportConnectThread")):
            thread = threading.Thread(target=target, args=(live,), daemon=True)
            thread.name = name
            thread.start()

        logger.info(f"Starting session {session_id}")
        return True

    def _do_stop(self) -> bool:
        if self._state is SessionState.IDLE:
            logger.warning("Stop rejected: no session in progress")
            return False

        live = self._session
        self._set_state(SessionState.STOPPING)
        if live is not None:
            self._release(live)
        self._error_message = None
        self._set_state(SessionState.IDLE)
        logger.info(f"Session stopped after {format_elapsed(self._elapsed_seconds)}: "
                    f"{self._frames_sent} frames sent, {self._frames_dropped} dropped")
        return True

    def _do_clear(self) -> bool:
        if self._state in (SessionState.STARTING, SessionState.RECORDING):
            logger.warning(f"Clear rejected in state {self._state.value}")
            return False
        self.aggregator.reset()
        self._elapsed_seconds = 0
        self._publish_elapsed()
        return True

    # Worker threads

    def _open_capture(self, live: _LiveSession) -> None:
        try:
            live.capture.open()
        except CaptureError as e:
            self._post(_CaptureFailed(live.session_id, e))
            return
        except Exception as e:
            logger.error(f"Unexpected error opening capture: {e}", exc_info=True)
            self._post(_CaptureFailed(live.session_id, CaptureError(str(e))))
            return
        self._post(_CaptureOpened(live.session_id))

    def _connect_transport(self, live: _LiveSession) -> None:
        try:
            live.transport.connect(self.endpoint)
        except TransportError as e:
            self._post(_TransportFailed(live.session_id, e))
            return
        except Exception as e:
            logger.error(f"Unexpected error connecting transport: {e}", exc_info=True)
            self._post(_TransportFailed(live.session_id, TransportError(str(e))))
            return
        self._post(_ConnectionOpened(live.session_id))

    def _pump_frames(self, live: _LiveSession) -> None:
        try:
            for frame in live.capture.frames():
                self._post(_FrameCaptured(live.session_id, frame))
        except CaptureError as e:
            self._post(_CaptureFailed(live.session_id, e))
        logger.debug(f"Capture pump for session {live.session_id} finished")

    # Producer events

    def _on_capture_opened(self, message: _CaptureOpened) -> None:
        live = self._current(message.session_id)
        if live is None:
            logger.debug(f"Ignoring capture open for stale session {message.session_id}")
            return
        live.capture_open = True
        live.pump_thread = threading.Thread(target=self._pump_frames, args=(live,), daemon=True)
        live.pump_thread.name = "CapturePumpThread"
        live.pump_thread.start()
        self._maybe_begin_recording(live)

    def _on_connection_opened(self, message: _ConnectionOpened) -> None:
        live = self._current(message.session_id)
        if live is None:
            logger.debug(f"Ignoring connection open for stale session {message.session_id}")
            return
        live.connection_open = True
        self._maybe_begin_recording(live)

    def _maybe_begin_recording(self, live: _LiveSession) -> None:
        if self._state is SessionState.STARTING and live.capture_open and live.connection_open:
            self._set_state(SessionState.RECORDING)

    def _on_session_failure(self, message) -> None:
        live = self._current(message.session_id)
        if live is None or self._state not in (SessionState.STARTING, SessionState.RECORDING):
            logger.debug(f"Ignoring failure for inactive session {message.session_id}: {message.error}")
            return
        logger.error(f"Session {live.session_id} failed: {message.error}")
        self._error_message = str(message.error)
        live.record.error_message = self._error_message
        self._release(live)
        self._set_state(SessionState.ERRORED)

    def _on_frame(self, message: _FrameCaptured) -> None:
        live = self._current(message.session_id)
        if live is None:
            return
        if self._state is not SessionState.RECORDING:
            self._frames_dropped += 1
            return
        wire_frame = self.converter.to_wire(message.frame.samples)
        if live.transport.send(wire_frame):
            self._frames_sent += 1
        else:
            self._frames_dropped += 1

    def _on_transcript(self, message: _TranscriptReceived) -> None:
        live = self._current(message.session_id)
        if live is None or self._state not in (SessionState.STARTING, SessionState.RECORDING):
            logger.debug(f"Discarding transcript event for inactive session {message.session_id}")
            return
        self._events_received += 1
        self.aggregator.on_event(message.event)

    def _on_tick(self, message: _TimerTick) -> None:
        live = self._current(message.session_id)
        if live is None or self._state not in (SessionState.STARTING, SessionState.RECORDING):
            return
        self._elapsed_seconds += 1
        live.record.elapsed_seconds = self._elapsed_seconds
        self._publish_elapsed()

    def _release(self, live: _LiveSession) -> None:
        """Release every resource of a session exactly once."""
        if live.released:
            return
        live.released = True
        live.timer.stop()
        live.capture.close()
        live.transport.close()
        if live.pump_thread is not None:
            live.pump_thread.join(timeout=2.0)
            if live.pump_thread.is_alive():
                logger.warning("Capture pump thread did not stop cleanly")
        if self._session is live:
            self._session = None
        logger.info(f"Released resources of session {live.session_id}")
