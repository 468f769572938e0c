"""Continuous speech recognition and wake-word listening."""

from .base import AbstractRecognitionEngine
from .listener import WakeWordListener

__all__ = [
    "AbstractRecognitionEngine",
    "WakeWordListener",
]
