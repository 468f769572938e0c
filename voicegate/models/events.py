"""Event models exchanged with the recognition engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class EngineErrorCode(Enum):
    """Error codes a recognition engine may report."""
    NOT_ALLOWED = "not-allowed"
    SERVICE_NOT_ALLOWED = "service-not-allowed"
    NETWORK = "network"
    NO_SPEECH = "no-speech"
    AUDIO_CAPTURE = "audio-capture"
    ABORTED = "aborted"
    UNKNOWN = "unknown"


@dataclass
class RecognitionOptions:
    """Options passed to the engine on every (re)start."""
    language: str = "zh-CN"
    continuous: bool = True
    interim_results: bool = True


@dataclass
class RecognitionAlternative:
    """Best hypothesis of a single recognition result."""
    transcript: str
    is_final: bool = False
    confidence: Optional[float] = None


@dataclass
class RecognitionEvent:
    """Transcript event; ``results`` is ordered oldest first."""
    results: List[RecognitionAlternative] = field(default_factory=list)

    @property
    def latest(self) -> Optional[RecognitionAlternative]:
        return self.results[-1] if self.results else None


@dataclass
class EngineErrorEvent:
    """Error event with a coded reason."""
    code: EngineErrorCode
    message: str = ""
