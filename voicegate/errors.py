"""Exception taxonomy for the voice capture pipeline."""

from typing import Optional


class VoiceGateError(Exception):
    """Base class for all voicegate errors."""


class MicrophoneError(VoiceGateError):
    """Microphone access failed.

    Args:
        reason: One of ``not-allowed``, ``not-found``, ``not-supported`` or ``other``
        message: Human readable detail
    """

    reason = "other"

    def __init__(self, message: str = "", reason: Optional[str] = None):
        super().__init__(message or self.__class__.__name__)
        if reason:
            self.reason = reason


class PermissionDenied(MicrophoneError):
    reason = "not-allowed"


class DeviceNotFound(MicrophoneError):
    reason = "not-found"


class CapabilityUnsupported(MicrophoneError):
    reason = "not-supported"


class EngineTransientError(VoiceGateError):
    """Recognition engine reported a recoverable error (network, service, no speech)."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code


class EncodingFailure(VoiceGateError):
    """The audio encoder failed while recording."""


class TranscriptionFailure(VoiceGateError):
    """The transcription endpoint returned an error or could not be reached."""

    def __init__(self, detail: str, status: Optional[int] = None):
        super().__init__(f"HTTP {status}: {detail}" if status is not None else detail)
        self.detail = detail
        self.status = status


class ConcurrentRequestSuppressed(VoiceGateError):
    """A transcription was submitted while another one was in flight.

    The dispatcher logs and drops such payloads instead of raising; the class
    names the condition for callers that want to surface it.
    """
