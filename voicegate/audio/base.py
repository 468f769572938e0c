"""Abstract audio primitives the recording session is built on."""

from abc import ABC, abstractmethod
from typing import Callable, Optional
import logging

logger = logging.getLogger(__name__)


class AudioStream(ABC):
    """A live microphone stream."""

    @property
    @abstractmethod
    def active(self) -> bool:
        """True until every track of the stream has been stopped."""

    @abstractmethod
    def stop(self) -> None:
        """Stop all tracks and release the device. Must be idempotent and not block."""


class AudioEncoder(ABC):
    """Encodes a stream into chunks.

    The owner registers ``on_data``, ``on_stop`` and ``on_error`` before
    calling :meth:`start`. Events are delivered on the event loop thread.
    """

    mime_type = "audio/wav"

    def __init__(self, stream: AudioStream):
        self.stream = stream
        self.state = "inactive"
        self.on_data: Optional[Callable[[bytes], None]] = None
        self.on_stop: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None

    @abstractmethod
    def start(self) -> None:
        """Begin encoding."""

    @abstractmethod
    def stop(self) -> None:
        """Finish encoding; emits the remaining data and then the stop event."""

    def release(self) -> None:
        """Detach handlers so late events go nowhere."""
        self.on_data = None
        self.on_stop = None
        self.on_error = None


class FrequencyAnalyser(ABC):
    """Synchronous energy reading over a stream."""

    @abstractmethod
    def sample(self) -> float:
        """Average frequency-bin magnitude of the most recent frame."""

    @abstractmethod
    def close(self) -> None:
        """Release the analysis context."""


class MicrophoneSource(ABC):
    """Entry point to the platform's audio capture."""

    @abstractmethod
    def is_supported(self) -> bool:
        """True when the capture API is present on this platform."""

    @abstractmethod
    async def request_stream(self) -> AudioStream:
        """Open a stream, raising :class:`~voicegate.errors.MicrophoneError` on failure."""

    @abstractmethod
    def create_encoder(self, stream: AudioStream) -> AudioEncoder:
        pass

    @abstractmethod
    def create_analyser(self, stream: AudioStream) -> FrequencyAnalyser:
        pass
