"""Audio-related data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class StopReason(Enum):
    """Why a recording session stopped."""
    SILENCE_TIMEOUT = "silence-timeout"
    EXPLICIT = "explicit"
    ERROR = "error"


@dataclass
class AudioPayload:
    """Encoded audio of one utterance, ready for transcription."""
    data: bytes
    mime_type: str = "audio/wav"
    chunk_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.data

    @property
    def filename(self) -> str:
        extension = self.mime_type.split("/")[-1] or "bin"
        return f"audio.{extension}"


@dataclass
class SessionResult:
    """Outcome handed over by a recording session once it has cleaned up."""
    reason: StopReason
    payload: Optional[AudioPayload] = None
    error: Optional[Exception] = None
    duration_seconds: float = 0.0
