"""Single-flight transcription dispatch."""

import logging
import time
from typing import Callable, List, Optional

from ..errors import TranscriptionFailure
from ..models.audio import AudioPayload
from ..models.transcription import ConversationRecord, TranscriptionOutcome
from .base import AbstractTranscriptionBackend

logger = logging.getLogger(__name__)


class TranscriptionDispatcher:
    """Submits payloads to the backend, at most one request at a time.

    A payload submitted while another request is in flight is dropped, not
    queued. Owns the result text and the conversation history.
    """

    def __init__(self,
                 backend: AbstractTranscriptionBackend,
                 on_status: Optional[Callable[..., None]] = None,
                 on_record: Optional[Callable[[ConversationRecord], None]] = None):
        """Initialize dispatcher.

        Args:
            backend: Transcription backend performing the remote call
            on_status: Called as ``on_status(status, error=None)`` after a response is applied
            on_record: Called with each record appended to the history
        """
        self.backend = backend
        self.on_status = on_status
        self.on_record = on_record

        self.in_flight = False
        self.result_text = ""
        self.history: List[ConversationRecord] = []
        self.requests_sent = 0
        self.requests_suppressed = 0

    async def submit(self, payload: AudioPayload,
                     is_current: Optional[Callable[[], bool]] = None) -> Optional[TranscriptionOutcome]:
        """Transcribe ``payload`` unless a request is already in flight.

        Args:
            payload: Audio to transcribe
            is_current: Checked once the response arrives; when it returns False
                the response is stale and is discarded

        Returns:
            The outcome, or None when the payload was dropped
        """
        if self.in_flight:
            self.requests_suppressed += 1
            logger.info(f"Transcription already in flight, dropping {len(payload.data)} byte payload")
            return None

        self.in_flight = True
        self.requests_sent += 1
        start_time = time.time()
        try:
            logger.info(f"📤 Submitting {len(payload.data)} bytes for transcription")
            text = await self.backend.transcribe(payload)
            outcome = TranscriptionOutcome(text=text or "")
        except TranscriptionFailure as e:
            logger.error(f"Transcription failed: {e}")
            outcome = TranscriptionOutcome(error=str(e))
        except Exception as e:
            logger.error(f"Unexpected transcription error: {e}", exc_info=True)
            outcome = TranscriptionOutcome(error=str(e) or e.__class__.__name__)
        finally:
            self.in_flight = False
        outcome.processing_time = time.time() - start_time

        if is_current is not None and not is_current():
            logger.info("Discarding stale transcription response")
            outcome.applied = False
            return outcome

        self._apply(outcome)
        return outcome

    def _apply(self, outcome: TranscriptionOutcome) -> None:
        if not outcome.succeeded:
            self._notify(f"Transcription failed: {outcome.error}", error=outcome.error)
            return

        if not outcome.text:
            logger.info("🔇 Transcription returned no text")
            self._notify("No speech recognized")
            return

        self.result_text = outcome.text
        record = ConversationRecord(text=outcome.text)
        self.history.append(record)
        logger.info(f"📝 Recognized: '{outcome.text}' ({outcome.processing_time:.2f}s)")
        self._notify("Recognized")
        if self.on_record:
            self.on_record(record)

    def _notify(self, status: str, error: Optional[str] = None) -> None:
        if self.on_status:
            self.on_status(status, error=error)
