"""Transcription-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ConversationRecord:
    """One entry of the in-memory conversation history."""
    text: str
    speaker: str = "user"
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class TranscriptionOutcome:
    """Result of one dispatched transcription request."""
    text: str = ""
    error: Optional[str] = None
    processing_time: float = 0.0
    applied: bool = True

    @property
    def succeeded(self) -> bool:
        return self.error is None
