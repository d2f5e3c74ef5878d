"""Main application entry point for LiveScribe."""

import sys
import argparse
import logging
from pathlib import Path
from typing import Optional

from . import __version__
from .audio.capture import list_input_devices
from .auto_mode import run_auto_mode
from .config import LiveScribeConfig
from .services.session_controller import SessionController
from .storage.transcript_store import TranscriptStore
from .transcription.aggregator import TranscriptAggregator

logger = logging.getLogger(__name__)


class Server:
    """Wires configuration, transcript state and the session controller together."""

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        # Load configuration
        self.config = LiveScribeConfig(config_path)
        # Command line level overrides the config file
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        self.controller: Optional[SessionController] = None
        self.store: Optional[TranscriptStore] = None

    def init(self) -> bool:
        """Create services and check the audio environment.

        Returns:
            False if audio capture is unsupported in this environment
        """
        logger.info("Initializing services...")
        self.aggregator = TranscriptAggregator()
        self.store = TranscriptStore(self.config.get_data_directory())
        self.controller = SessionController.from_config(self.config, self.aggregator)
        logger.info(f"Streaming endpoint: {self.controller.endpoint}")
        return self.controller.mount()

    def run_auto(self, duration: int) -> Optional[str]:
        return run_auto_mode(self.controller, self.store, duration)

    def run_interactive(self) -> None:
        from .ui.live_screen import LiveScreen
        LiveScreen(self.controller, self.store).run()

    def cleanup(self) -> None:
        if self.controller:
            self.controller.shutdown()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    # Get log file path from config
    log_file_path = config.get('logging.file_path', 'data/logs/livescribe.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info(f"LiveScribe {__version__} starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def print_input_devices() -> None:
    devices = list_input_devices()
    if not devices:
        print("No input devices found")
        return
    print("Available input devices:")
    for index, name in devices:
        print(f"  [{index}] {name}")


def main() -> None:
    """Main entry point for LiveScribe application."""
    parser = argparse.ArgumentParser(
        description="LiveScribe - Live microphone transcription over a websocket",
        epilog="Keys: SPACE/ENTER=Start/stop, s=Stop, c=Clear, w=Save transcript, y=Copy to clipboard, q=Quit"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in defaults)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (overrides config)"
    )

    parser.add_argument(
        "--url",
        type=str,
        help="Streaming endpoint URL, e.g. ws://localhost:8000/audio-stream (overrides config)"
    )

    parser.add_argument(
        "--device",
        type=int,
        help="Input device index (see --list-devices)"
    )

    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List audio input devices and exit"
    )

    parser.add_argument(
        "--auto",
        action="store_true",
        help="Run in automatic mode: record for the specified duration, print and save the transcript, then exit"
    )

    parser.add_argument(
        "--duration",
        type=int,
        default=10,
        help="Duration in seconds for auto mode recording (default: 10)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"LiveScribe v{__version__}"
    )

    args = parser.parse_args()

    if args.list_devices:
        try:
            print_input_devices()
        except OSError as e:
            print(f"❌ Audio system unavailable: {e}")
            sys.exit(1)
        return

    server = None
    try:
        server = Server(args.config, args.log_level)
        if args.url:
            server.config.set('transport.url', args.url)
        if args.device is not None:
            server.config.set('audio.device_index', args.device)

        if not server.init():
            print(f"❌ {server.controller.error_message}")
            sys.exit(1)

        if args.auto:
            server.run_auto(args.duration)
        else:
            server.run_interactive()
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except (FileNotFoundError, ValueError, RuntimeError) as e:
        print(f"❌ Error: {e}")
        logger.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if server:
            server.cleanup()


if __name__ == "__main__":
    main()
