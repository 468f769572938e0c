"""Transcription module for voicegate."""

from .base import AbstractTranscriptionBackend
from .client import TranscriptionClient
from .dispatcher import TranscriptionDispatcher

__all__ = [
    "AbstractTranscriptionBackend",
    "TranscriptionClient",
    "TranscriptionDispatcher",
]
