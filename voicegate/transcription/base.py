"""Abstract base class for transcription backends."""

from abc import ABC, abstractmethod
import logging

from ..models.audio import AudioPayload

logger = logging.getLogger(__name__)


class AbstractTranscriptionBackend(ABC):
    """Abstract base class for transcription backends."""

    def __init__(self, model: str):
        """Initialize backend with the model identifier sent on every request."""
        self.model = model

    @abstractmethod
    async def transcribe(self, payload: AudioPayload) -> str:
        """Transcribe one utterance.

        Args:
            payload: Encoded audio of the utterance

        Returns:
            Recognized text, possibly empty

        Raises:
            TranscriptionFailure: On a non-2xx response or a network failure
        """
        pass
