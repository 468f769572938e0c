"""Observable status of the voice pipeline."""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from .state import OrchestratorState, PermissionStatus
from .transcription import ConversationRecord


@dataclass(frozen=True)
class VoiceSnapshot:
    """Read-only view of the orchestrator for callers and subscribers."""
    state: OrchestratorState = OrchestratorState.UNINITIALIZED
    status: str = "Not initialized"
    result_text: str = ""
    error: Optional[str] = None
    permission: PermissionStatus = PermissionStatus.UNKNOWN
    is_recording: bool = False
    history: Tuple[ConversationRecord, ...] = field(default_factory=tuple)
