"""voicegate - wake-word activated voice capture and transcription."""

__version__ = "0.1.0"
