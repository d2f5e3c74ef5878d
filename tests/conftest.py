"""Pytest configuration and fixtures for LiveScribe tests."""

import asyncio
import socket
import tempfile
import threading
import time
import logging
from typing import Callable, Dict, List, Optional
from unittest.mock import Mock, patch

import numpy as np
import pytest
from aiohttp import web, WSMsgType
from pubsub import pub

from livescribe.errors import CaptureError, ConnectionFailed, ConnectionLost
from livescribe.models.audio import AudioFrame
from livescribe.models.session import ConnectionState
from livescribe.services.session_controller import SessionController
from livescribe.transcription.aggregator import TranscriptAggregator


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TEST_ENDPOINT = "ws://test.invalid/audio-stream"


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external resources")
    config.addinivalue_line("markers", "integration: tests running real sockets or threads end to end")
    config.addinivalue_line("markers", "hardware: tests needing a real microphone")
    config.addinivalue_line("markers", "slow: tests taking more than a few seconds")


def pytest_collection_modifyitems(config, items):
    # Hardware tests only run when explicitly selected with -m hardware
    if "hardware" in (config.option.markexpr or ""):
        return
    skip_hardware = pytest.mark.skip(reason="needs a microphone, run with -m hardware")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll predicate until it holds or the timeout expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def wait_for():
    return wait_until


@pytest.fixture(autouse=True)
def reset_pubsub():
    """Drop pub/sub listeners registered by a test."""
    yield
    pub.unsubAll()


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sine_frame():
    """One 1024-sample float32 frame of a 440 Hz tone at half scale."""
    sample_rate = 16000
    t = np.arange(1024) / sample_rate
    return (0.5 * np.sin(2 * np.pi * 440 * t)).astype(np.float32)


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # 1024 float32 samples of silence
        mock_stream.read.return_value = np.zeros(1024, dtype=np.float32).tobytes()
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        device_info = {"index": 0, "name": "Mock Microphone", "maxInputChannels": 1}
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_device_count.return_value = 1
        mock_pyaudio_instance.get_device_info_by_index.return_value = device_info
        mock_pyaudio_instance.get_default_input_device_info.return_value = device_info

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


class FakeCaptureSource:
    """Capture source yielding a constant frame at a fixed cadence."""

    def __init__(self, open_error: Optional[Exception] = None, frame_interval: float = 0.01,
                 frame_size: int = 1024, fail_after: Optional[int] = None, value: float = 0.25):
        self.open_error = open_error
        self.frame_interval = frame_interval
        self.frame_size = frame_size
        self.fail_after = fail_after
        self.value = value
        self.opened = False
        self.frames_yielded = 0
        self.closed = threading.Event()

    def open(self):
        if self.open_error is not None:
            raise self.open_error
        self.opened = True
        return self

    def frames(self):
        samples = np.full(self.frame_size, self.value, dtype=np.float32)
        while not self.closed.wait(self.frame_interval):
            if self.fail_after is not None and self.frames_yielded >= self.fail_after:
                raise CaptureError("Audio read failed: device unplugged")
            self.frames_yielded += 1
            yield AudioFrame(samples=samples, sequence_number=self.frames_yielded, timestamp=time.time())

    def close(self):
        self.closed.set()


class FakeTransport:
    """Transport recording sent frames; tests push events through emit() and drop()."""

    def __init__(self, on_event, on_error, connect_error: Optional[Exception] = None,
                 connect_delay: float = 0.0):
        self.on_event = on_event
        self.on_error = on_error
        self.connect_error = connect_error
        self.connect_delay = connect_delay
        self.endpoint = None
        self.state = ConnectionState.CLOSED
        self.sent: List[bytes] = []
        self.closed = threading.Event()

    def connect(self, endpoint):
        self.state = ConnectionState.CONNECTING
        if self.connect_delay:
            self.closed.wait(self.connect_delay)
        if self.closed.is_set():
            raise ConnectionFailed(f"Transport closed while connecting to {endpoint}")
        if self.connect_error is not None:
            self.state = ConnectionState.ERRORED
            raise self.connect_error
        self.endpoint = endpoint
        self.state = ConnectionState.OPEN
        return self.state

    def send(self, frame: bytes) -> bool:
        if self.state is not ConnectionState.OPEN:
            return False
        self.sent.append(frame)
        return True

    def close(self):
        self.state = ConnectionState.CLOSED
        self.closed.set()

    def emit(self, event):
        self.on_event(event)

    def drop(self):
        self.state = ConnectionState.ERRORED
        self.on_error(ConnectionLost("Connection lost: closed by server (code 1011)"))


class ControllerHarness:
    """A SessionController wired to fake capture and transport instances."""

    def __init__(self, capture_kwargs: Optional[Dict] = None, transport_kwargs: Optional[Dict] = None,
                 environment_check=None, tick_interval: float = 60.0, endpoint: str = TEST_ENDPOINT):
        self.capture_kwargs = capture_kwargs or {}
        self.transport_kwargs = transport_kwargs or {}
        self.captures: List[FakeCaptureSource] = []
        self.transports: List[FakeTransport] = []
        self.aggregator = TranscriptAggregator()
        self.controller = SessionController(
            aggregator=self.aggregator,
            endpoint=endpoint,
            capture_factory=self._make_capture,
            transport_factory=self._make_transport,
            environment_check=environment_check,
            tick_interval=tick_interval,
        )

    def _make_capture(self):
        capture = FakeCaptureSource(**self.capture_kwargs)
        self.captures.append(capture)
        return capture

    def _make_transport(self, on_event, on_error):
        transport = FakeTransport(on_event, on_error, **self.transport_kwargs)
        self.transports.append(transport)
        return transport

    @property
    def capture(self) -> FakeCaptureSource:
        return self.captures[-1]

    @property
    def transport(self) -> FakeTransport:
        return self.transports[-1]


@pytest.fixture
def make_harness():
    """Factory for controller harnesses; every controller is shut down after the test."""
    harnesses = []

    def factory(**kwargs) -> ControllerHarness:
        harness = ControllerHarness(**kwargs)
        harnesses.append(harness)
        return harness

    yield factory

    for harness in harnesses:
        harness.controller.shutdown()


@pytest.fixture
def fake_capture_factory():
    """Factory producing FakeCaptureSource instances with the given options."""
    return FakeCaptureSource


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class WebSocketBackend:
    """In-process aiohttp websocket server standing in for the transcription backend.

    Binary frames are recorded in arrival order. `replies` maps a received
    frame count to text messages sent back once that many frames arrived.
    """

    def __init__(self, path: str = "/audio-stream"):
        self.path = path
        self.port = _free_port()
        self.received: List[bytes] = []
        self.replies: Dict[int, List[str]] = {}
        self.connections = 0
        self._frames_changed = threading.Condition()
        self._sockets: List[web.WebSocketResponse] = []
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.name = "WebSocketBackendThread"
        self._ready = threading.Event()
        self._runner: Optional[web.AppRunner] = None

    @property
    def url(self) -> str:
        return f"ws://127.0.0.1:{self.port}{self.path}"

    def start(self) -> "WebSocketBackend":
        self._thread.start()
        if not self._ready.wait(5.0):
            raise RuntimeError("Websocket backend did not start")
        return self

    def stop(self) -> None:
        asyncio.run_coroutine_threadsafe(self._shutdown(), self._loop).result(5.0)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(5.0)

    def send_text(self, text: str) -> None:
        """Send a text frame to every connected client."""
        asyncio.run_coroutine_threadsafe(self._broadcast(text), self._loop).result(5.0)

    def drop_connections(self) -> None:
        """Close every client connection from the server side."""
        asyncio.run_coroutine_threadsafe(self._close_sockets(), self._loop).result(5.0)

    def wait_for_frames(self, count: int, timeout: float = 5.0) -> bool:
        with self._frames_changed:
            return self._frames_changed.wait_for(lambda: len(self.received) >= count, timeout)

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_until_complete(self._start())
        self._ready.set()
        self._loop.run_forever()
        self._loop.close()

    async def _start(self) -> None:
        app = web.Application()
        app.router.add_get(self.path, self._handle)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "127.0.0.1", self.port)
        await site.start()

    async def _shutdown(self) -> None:
        await self._close_sockets()
        await self._runner.cleanup()

    async def _broadcast(self, text: str) -> None:
        for ws in list(self._sockets):
            await ws.send_str(text)

    async def _close_sockets(self) -> None:
        for ws in list(self._sockets):
            await ws.close()

    async def _handle(self, request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.connections += 1
        self._sockets.append(ws)
        try:
            async for msg in ws:
                if msg.type != WSMsgType.BINARY:
                    continue
                with self._frames_changed:
                    self.received.append(msg.data)
                    count = len(self.received)
                    self._frames_changed.notify_all()
                for text in self.replies.get(count, []):
                    await ws.send_str(text)
        finally:
            self._sockets.remove(ws)
        return ws


@pytest.fixture
def ws_backend():
    """Running websocket backend, stopped after the test."""
    backend = WebSocketBackend().start()
    yield backend
    backend.stop()


@pytest.fixture
def silent_listener():
    """TCP listener that accepts connections but never answers the websocket handshake."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen(5)
        yield f"ws://127.0.0.1:{sock.getsockname()[1]}/audio-stream"
