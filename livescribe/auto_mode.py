"""Auto mode: record for a fixed duration, then print and save the transcript."""

import logging
from typing import Optional

from .models.session import SessionState
from .services.session_controller import SessionController
from .storage.transcript_store import TranscriptStore

logger = logging.getLogger(__name__)


def run_auto_mode(controller: SessionController, store: TranscriptStore, duration_seconds: int = 10,
                  connect_timeout: float = 15.0) -> Optional[str]:
    """Run one unattended recording session.

    This mode:
    1. Starts a session
    2. Waits for recording to begin
    3. Records for the specified duration
    4. Stops, prints the transcript and saves it

    Args:
        controller: Mounted session controller
        store: Where the transcript is saved
        duration_seconds: How long to record
        connect_timeout: How long to wait for the session to start recording

    Returns:
        Path of the saved transcript, or None if nothing was transcribed

    Raises:
        RuntimeError: If the session could not start or failed while recording
    """
    logger.info(f"Starting auto mode: {duration_seconds}s recording")

    if not controller.start():
        raise RuntimeError(controller.error_message or "Session could not be started")

    controller.wait_for_state(SessionState.RECORDING, SessionState.ERRORED, timeout=connect_timeout)
    if controller.state is not SessionState.RECORDING:
        message = controller.error_message or "Timed out waiting for recording to start"
        controller.stop()
        raise RuntimeError(message)

    print(f"🎙️  Recording for {duration_seconds} seconds...")
    failed = controller.wait_for_state(SessionState.ERRORED, timeout=duration_seconds)
    error_message = controller.error_message
    status = controller.status()
    controller.stop()

    if failed:
        raise RuntimeError(error_message or "Session failed")

    text = controller.aggregator.text
    print(f"\n⏱️  Recorded {status.elapsed_display}, {status.frames_sent} frames sent, "
          f"{status.events_received} transcript events")
    print("=" * 50)
    print(text or "(no speech transcribed)")
    print("=" * 50)

    if not text.strip():
        logger.info("Auto mode finished with an empty transcript")
        return None

    path = store.save(text)
    print(f"💾 Transcript saved: {path}")
    logger.info(f"Auto mode completed: {status.elapsed_display}, saved {path}")
    return path
