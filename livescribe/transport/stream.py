"""Websocket transport streaming PCM audio out and transcript events in."""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Callable, List, Optional

import aiohttp

from ..errors import ConnectionFailed, ConnectionLost, TransportError
from ..models.events import TranscriptEvent
from ..models.session import ConnectionState
from .protocol import parse_transcript_message

logger = logging.getLogger(__name__)

_CONNECT_ERRORS = (
    aiohttp.ClientError,
    OSError,
    asyncio.TimeoutError,
    concurrent.futures.TimeoutError,
    concurrent.futures.CancelledError,
)


class StreamTransport:
    """Owns one websocket connection to the transcription backend.

    The connection runs on a private asyncio event loop in a background
    thread, so every public method may be called from ordinary threads.
    Outbound frames are fire-and-forget: anything submitted while the
    connection is not OPEN, or while the outbound queue is full, is
    dropped rather than buffered. Inbound text frames are parsed and
    handed to ``on_event`` in arrival order.
    """

    def __init__(
        self,
        on_event: Callable[[TranscriptEvent], None],
        on_error: Optional[Callable[[TransportError], None]] = None,
        on_state_change: Optional[Callable[[ConnectionState], None]] = None,
        connect_timeout: float = 10.0,
        heartbeat: Optional[float] = None,
        max_pending_frames: int = 64,
        close_timeout: float = 5.0,
    ):
        """Initialize the transport.

        Args:
            on_event: Called with every inbound TranscriptEvent
            on_error: Called with ConnectionLost when an open connection drops
            on_state_change: Called after every ConnectionState transition
            connect_timeout: Seconds connect() waits for the connection to open
            heartbeat: Websocket ping interval in seconds, None to disable
            max_pending_frames: Outbound frames queued before new ones are dropped
            close_timeout: Seconds close() waits for the connection to shut down
        """
        self.on_event = on_event
        self.on_error = on_error
        self.on_state_change = on_state_change
        self.connect_timeout = connect_timeout
        self.heartbeat = heartbeat
        self.max_pending_frames = max_pending_frames
        self.close_timeout = close_timeout

        self.state = ConnectionState.CLOSED
        self.endpoint: Optional[str] = None
        self.frames_sent = 0
        self.frames_dropped = 0

        self._lock = threading.RLock()
        self._attempted = False
        self._closing = False

        # Owned by the transport event loop
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._connect_future: Optional[concurrent.futures.Future] = None
        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._outbox: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    def _set_state(self, state: ConnectionState) -> None:
        with self._lock:
            previous = self.state
            if previous is state:
                return
            self.state = state
        logger.info(f"Connection state: {previous.value} -> {state.value}")
        if self.on_state_change:
            self.on_state_change(state)

    def connect(self, endpoint: str) -> ConnectionState:
        """Open the connection, blocking until it is OPEN or has failed.

        Args:
            endpoint: Websocket URL, e.g. ws://localhost:8000/audio-stream

        Returns:
            ConnectionState.OPEN

        Raises:
            ConnectionFailed: The connection could not be opened
            TransportError: connect() was already attempted on this transport
        """
        with self._lock:
            if self._attempted:
                raise TransportError("Only one connect attempt is permitted per transport")
            if self._closing:
                raise TransportError("Transport is closed")
            self._attempted = True
            self.endpoint = endpoint
            self._set_state(ConnectionState.CONNECTING)

            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(target=self._run_loop, daemon=True)
            self._thread.name = "StreamTransportThread"
            self._thread.start()
            self._connect_future = asyncio.run_coroutine_threadsafe(self._open(endpoint), self._loop)

        logger.info(f"Connecting to {endpoint}")
        try:
            self._connect_future.result(timeout=self.connect_timeout)
        except _CONNECT_ERRORS as e:
            self._connect_future.cancel()
            if not self._closing:
                self._set_state(ConnectionState.ERRORED)
                self._stop_loop()
            reason = str(e) or type(e).__name__
            logger.error(f"Connection to {endpoint} failed: {reason}")
            raise ConnectionFailed(f"Could not connect to {endpoint}: {reason}") from e

        with self._lock:
            if self._closing:
                raise ConnectionFailed(f"Transport closed while connecting to {endpoint}")
            asyncio.run_coroutine_threadsafe(self._start_io(), self._loop).result(timeout=self.close_timeout)
            self._set_state(ConnectionState.OPEN)

        logger.info(f"Connected to {endpoint}")
        return self.state

    def send(self, frame: bytes) -> bool:
        """Queue one binary audio frame for sending without blocking.

        Returns:
            True if the frame was queued, False if it was dropped
        """
        if self.state is not ConnectionState.OPEN:
            self.frames_dropped += 1
            return False
        try:
            self._loop.call_soon_threadsafe(self._enqueue, frame)
        except RuntimeError:
            # Loop already shut down by a concurrent close()
            self.frames_dropped += 1
            return False
        return True

    def close(self) -> None:
        """Close the connection and release all resources. Idempotent."""
        with self._lock:
            if self._closing:
                return
            self._closing = True
            loop = self._loop

        if loop is not None:
            if self._connect_future is not None:
                self._connect_future.cancel()
            if loop.is_running():
                future = asyncio.run_coroutine_threadsafe(self._close_async(), loop)
                try:
                    future.result(timeout=self.close_timeout)
                except _CONNECT_ERRORS as e:
                    logger.warning(f"Error while closing connection: {e or type(e).__name__}")
            self._stop_loop()

        self._set_state(ConnectionState.CLOSED)
        logger.info(f"Transport closed: {self.frames_sent} frames sent, "
                    f"{self.frames_dropped} dropped")

    # Event loop side

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        finally:
            pending = asyncio.all_tasks(self._loop)
            for task in pending:
                task.cancel()
            if pending:
                self._loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            self._loop.close()
            logger.debug("Transport event loop closed")

    def _stop_loop(self) -> None:
        loop, thread = self._loop, self._thread
        if loop is None:
            return
        try:
            loop.call_soon_threadsafe(loop.stop)
        except RuntimeError:
            logger.debug("Transport event loop already closed")
        if thread is not None and thread is not threading.current_thread():
            thread.join(self.close_timeout)
            if thread.is_alive():
                logger.warning("Transport thread did not stop cleanly")

    async def _open(self, endpoint: str) -> None:
        self._outbox = asyncio.Queue(maxsize=self.max_pending_frames)
        session = aiohttp.ClientSession()
        self._session = session
        try:
            self._ws = await session.ws_connect(endpoint, heartbeat=self.heartbeat)
        except BaseException:
            await session.close()
            raise

    async def _start_io(self) -> None:
        self._tasks = [
            asyncio.ensure_future(self._receive_loop()),
            asyncio.ensure_future(self._send_loop()),
        ]

    async def _close_async(self) -> None:
        if self._ws is not None:
            await self._ws.close()
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _enqueue(self, frame: bytes) -> None:
        try:
            self._outbox.put_nowait(frame)
        except asyncio.QueueFull:
            self.frames_dropped += 1
            logger.debug("Outbound queue full, dropping audio frame")

    async def _send_loop(self) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await self._ws.send_bytes(frame)
            except (ConnectionResetError, aiohttp.ClientError, RuntimeError) as e:
                # The receive loop reports the dropped connection
                self.frames_dropped += 1
                logger.debug(f"Failed to send audio frame: {e}")
            else:
                self.frames_sent += 1

    async def _receive_loop(self) -> None:
        error = None
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._handle_text(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = self._ws.exception()
                    break
                else:
                    logger.debug(f"Ignoring inbound {msg.type.name} frame")
        except aiohttp.ClientError as e:
            error = e

        if self._closing:
            return

        reason = error or f"closed by server (code {self._ws.close_code})"
        logger.error(f"Connection lost: {reason}")
        self._set_state(ConnectionState.ERRORED)
        if self.on_error:
            self.on_error(ConnectionLost(f"Connection lost: {reason}"))

    def _handle_text(self, message: str) -> None:
        event = parse_transcript_message(message)
        if event is None:
            logger.warning(f"Ignoring unrecognized message: {message[:80]!r}")
            return
        logger.debug(f"Received {event.kind.value}: '{event.text[:50]}'")
        self.on_event(event)
