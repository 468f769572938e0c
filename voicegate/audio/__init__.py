"""Audio capture, analysis and recording session module."""

from .base import AudioEncoder, AudioStream, FrequencyAnalyser, MicrophoneSource
from .capture import PyAudioMicrophone, PyAudioStream, WavEncoder
from .analysis import SpectrumAnalyser
from .monitor import EnergyMonitor
from .silence import SilenceTimer
from .session import RecordingSession

__all__ = [
    'AudioEncoder',
    'AudioStream',
    'FrequencyAnalyser',
    'MicrophoneSource',
    'PyAudioMicrophone',
    'PyAudioStream',
    'WavEncoder',
    'SpectrumAnalyser',
    'EnergyMonitor',
    'SilenceTimer',
    'RecordingSession',
]
