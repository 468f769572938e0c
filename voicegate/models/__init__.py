"""Data models for the voicegate pipeline."""

from .audio import AudioPayload, SessionResult, StopReason
from .events import (
    EngineErrorCode,
    EngineErrorEvent,
    RecognitionAlternative,
    RecognitionEvent,
    RecognitionOptions,
)
from .state import OrchestratorEvent, OrchestratorState, PermissionStatus
from .snapshot import VoiceSnapshot
from .transcription import ConversationRecord, TranscriptionOutcome

__all__ = [
    "AudioPayload",
    "SessionResult",
    "StopReason",
    # Recognition engine events
    "EngineErrorCode",
    "EngineErrorEvent",
    "RecognitionAlternative",
    "RecognitionEvent",
    "RecognitionOptions",
    # Orchestrator
    "OrchestratorEvent",
    "OrchestratorState",
    "PermissionStatus",
    "VoiceSnapshot",
    "ConversationRecord",
    "TranscriptionOutcome",
]
