"""Services layer for voicegate application logic."""

from .orchestrator import VoiceCaptureOrchestrator
from .publisher import StatusPublisher
from .factory import build_orchestrator

__all__ = [
    "VoiceCaptureOrchestrator",
    "StatusPublisher",
    "build_orchestrator",
]
