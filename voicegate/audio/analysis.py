"""Frequency-domain energy analysis used for silence detection.

Bin magnitudes follow the convention of browser audio analysers so that
thresholds tuned there carry over: a Blackman window, magnitude spectrum
normalised by the frame size, exponential smoothing over time, and a decibel
scale mapped linearly onto 0..255 between ``min_decibels`` and ``max_decibels``.
"""

import logging
from typing import Optional

import numpy as np

from .base import FrequencyAnalyser

logger = logging.getLogger(__name__)

DEFAULT_FFT_SIZE = 1024
MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0
SMOOTHING_TIME_CONSTANT = 0.8


def pcm16_to_float(frame: bytes, fft_size: int = DEFAULT_FFT_SIZE) -> np.ndarray:
    """Convert little-endian 16-bit PCM to floats in [-1, 1), padded or cut to ``fft_size``."""
    samples = np.frombuffer(frame, dtype=np.int16).astype(np.float32) / 32768.0
    if len(samples) >= fft_size:
        return samples[-fft_size:]
    padded = np.zeros(fft_size, dtype=np.float32)
    padded[fft_size - len(samples):] = samples
    return padded


def frequency_bins(samples: np.ndarray,
                   previous: Optional[np.ndarray] = None,
                   smoothing: float = SMOOTHING_TIME_CONSTANT) -> np.ndarray:
    """Smoothed magnitude spectrum (``len(samples) // 2`` bins)."""
    fft_size = len(samples)
    windowed = samples * np.blackman(fft_size)
    magnitudes = np.abs(np.fft.rfft(windowed))[:fft_size // 2] / fft_size
    if previous is None or previous.shape != magnitudes.shape:
        previous = np.zeros_like(magnitudes)
    return smoothing * previous + (1.0 - smoothing) * magnitudes


def byte_scale(magnitudes: np.ndarray,
               min_decibels: float = MIN_DECIBELS,
               max_decibels: float = MAX_DECIBELS) -> np.ndarray:
    """Map magnitudes onto the 0..255 decibel scale."""
    decibels = 20.0 * np.log10(np.maximum(magnitudes, 1e-12))
    scaled = 255.0 * (decibels - min_decibels) / (max_decibels - min_decibels)
    return np.clip(np.floor(scaled), 0.0, 255.0)


def average_energy(magnitudes: np.ndarray) -> float:
    """Arithmetic mean of the byte-scaled frequency bins."""
    if magnitudes.size == 0:
        return 0.0
    return float(np.mean(byte_scale(magnitudes)))


class SpectrumAnalyser(FrequencyAnalyser):
    """Analyser over the most recent frame of a :class:`PyAudioStream`."""

    def __init__(self, stream, fft_size: int = DEFAULT_FFT_SIZE,
                 smoothing: float = SMOOTHING_TIME_CONSTANT):
        self._stream = stream
        self.fft_size = fft_size
        self.smoothing = smoothing
        self._previous: Optional[np.ndarray] = None

    @property
    def closed(self) -> bool:
        return self._stream is None

    def sample(self) -> float:
        if self._stream is None:
            return 0.0
        frame = self._stream.latest_frame()
        if not frame:
            return 0.0
        samples = pcm16_to_float(frame, self.fft_size)
        self._previous = frequency_bins(samples, self._previous, self.smoothing)
        return average_energy(self._previous)

    def close(self) -> None:
        if self._stream is not None:
            logger.debug("Spectrum analyser closed")
        self._stream = None
        self._previous = None
