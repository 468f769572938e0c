"""Orchestrator state machine models."""

from enum import Enum


class OrchestratorState(Enum):
    """Lifecycle states of the voice capture orchestrator."""
    UNINITIALIZED = "uninitialized"
    IDLE = "idle"
    LISTENING = "listening"
    AWAITING_PERMISSION = "awaiting-permission"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
    ERROR = "error"


class PermissionStatus(Enum):
    """Result of the latest microphone access attempt."""
    UNKNOWN = "unknown"
    GRANTED = "granted"
    DENIED = "denied"


class OrchestratorEvent(Enum):
    """Inputs of the orchestrator transition function."""
    INIT_SUCCEEDED = "init-succeeded"
    INIT_FAILED = "init-failed"
    LISTEN_STARTED = "listen-started"
    WAKE_PHRASE = "wake-phrase"
    PERMISSION_GRANTED = "permission-granted"
    PERMISSION_DENIED = "permission-denied"
    RECORDING_FINISHED = "recording-finished"
    RECORDING_DISCARDED = "recording-discarded"
    TRANSCRIPTION_FINISHED = "transcription-finished"
    STOP = "stop"


_S = OrchestratorState
_E = OrchestratorEvent

TRANSITIONS = {
    (_S.UNINITIALIZED, _E.INIT_SUCCEEDED): _S.IDLE,
    (_S.UNINITIALIZED, _E.INIT_FAILED): _S.ERROR,
    (_S.ERROR, _E.INIT_SUCCEEDED): _S.IDLE,
    (_S.ERROR, _E.INIT_FAILED): _S.ERROR,
    (_S.IDLE, _E.LISTEN_STARTED): _S.LISTENING,
    (_S.LISTENING, _E.WAKE_PHRASE): _S.AWAITING_PERMISSION,
    (_S.AWAITING_PERMISSION, _E.PERMISSION_GRANTED): _S.RECORDING,
    (_S.AWAITING_PERMISSION, _E.PERMISSION_DENIED): _S.LISTENING,
    (_S.RECORDING, _E.RECORDING_FINISHED): _S.TRANSCRIBING,
    (_S.RECORDING, _E.RECORDING_DISCARDED): _S.LISTENING,
    (_S.TRANSCRIBING, _E.TRANSCRIPTION_FINISHED): _S.LISTENING,
    (_S.IDLE, _E.STOP): _S.IDLE,
    (_S.LISTENING, _E.STOP): _S.IDLE,
    (_S.AWAITING_PERMISSION, _E.STOP): _S.IDLE,
    (_S.RECORDING, _E.STOP): _S.IDLE,
    (_S.TRANSCRIBING, _E.STOP): _S.IDLE,
}


def next_state(state: OrchestratorState, event: OrchestratorEvent):
    """Return the target state, or None when ``event`` is illegal in ``state``."""
    return TRANSITIONS.get((state, event))
