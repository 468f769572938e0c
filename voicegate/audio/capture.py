"""PyAudio-backed microphone stream, WAV encoder and microphone source."""

import asyncio
import errno
import importlib.util
import io
import logging
import threading
import wave
from typing import Callable, List, Optional

from ..errors import (
    CapabilityUnsupported,
    DeviceNotFound,
    EncodingFailure,
    MicrophoneError,
    PermissionDenied,
)
from .analysis import SpectrumAnalyser
from .base import AudioEncoder, AudioStream, MicrophoneSource

logger = logging.getLogger(__name__)


class PyAudioStream(AudioStream):
    """Live input stream; frames arrive on PortAudio's callback thread.

    Sinks are invoked on the event loop via ``call_soon_threadsafe`` and the
    latest frame is kept for synchronous analysis. ``stop()`` returns at once;
    closing the device happens in the default executor (``closing``).
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        channels: int = 1,
        device_index: Optional[int] = None,
    ):
        import pyaudio

        self.loop = loop
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.sample_width = 2

        self._lock = threading.Lock()
        self._latest = b''
        self._sinks: List[Callable[[bytes], None]] = []
        self._active = True
        self._continue = pyaudio.paContinue
        self.closing: Optional[asyncio.Future] = None

        self.pyaudio_instance = pyaudio.PyAudio()
        try:
            self._stream = self.pyaudio_instance.open(
                format=pyaudio.paInt16,
                channels=channels,
                rate=sample_rate,
                input=True,
                input_device_index=device_index,
                frames_per_buffer=chunk_size,
                stream_callback=self._on_frames,
            )
        except Exception:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
            raise
        logger.info(f"Audio stream opened: {sample_rate}Hz, {chunk_size} samples/chunk")

    @property
    def active(self) -> bool:
        return self._active

    def _on_frames(self, in_data, frame_count, time_info, status):
        with self._lock:
            if not self._active:
                return (None, self._continue)
            self._latest = in_data
            sinks = list(self._sinks)
        for sink in sinks:
            try:
                self.loop.call_soon_threadsafe(sink, in_data)
            except RuntimeError:
                # Event loop already closed
                break
        return (None, self._continue)

    def add_sink(self, sink: Callable[[bytes], None]) -> None:
        with self._lock:
            self._sinks.append(sink)

    def remove_sink(self, sink: Callable[[bytes], None]) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def latest_frame(self) -> bytes:
        with self._lock:
            return self._latest

    def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        with self._lock:
            self._sinks.clear()
            self._latest = b''
        try:
            self.closing = self.loop.run_in_executor(None, self._close_device)
        except RuntimeError:
            # Event loop already closed
            self._close_device()

    def _close_device(self) -> None:
        """Blocking PortAudio teardown; runs on an executor thread."""
        try:
            self._stream.stop_stream()
            self._stream.close()
        except Exception as e:
            logger.error(f"Error closing audio stream: {e}")
        finally:
            if self.pyaudio_instance:
                self.pyaudio_instance.terminate()
                self.pyaudio_instance = None
        logger.info("Audio stream stopped")


class WavEncoder(AudioEncoder):
    """Buffers PCM frames and emits one WAV chunk when stopped."""

    mime_type = "audio/wav"

    def __init__(self, stream: PyAudioStream):
        super().__init__(stream)
        self._frames: List[bytes] = []

    def start(self) -> None:
        if self.state == "recording":
            raise RuntimeError("Encoder already recording")
        self._frames = []
        self.state = "recording"
        self.stream.add_sink(self._on_frame)

    def _on_frame(self, frame: bytes) -> None:
        if self.state == "recording":
            self._frames.append(frame)

    def stop(self) -> None:
        if self.state != "recording":
            return
        self.state = "inactive"
        self.stream.remove_sink(self._on_frame)
        frames, self._frames = self._frames, []
        self.stream.loop.call_soon(self._finish, frames)

    def _finish(self, frames: List[bytes]) -> None:
        try:
            data = self._encode(frames) if frames else b''
        except Exception as e:
            logger.error(f"Error encoding audio: {e}")
            if self.on_error:
                self.on_error(EncodingFailure(str(e)))
            return
        if data and self.on_data:
            self.on_data(data)
        if self.on_stop:
            self.on_stop()

    def _encode(self, frames: List[bytes]) -> bytes:
        buffer = io.BytesIO()
        with wave.open(buffer, 'wb') as wf:
            wf.setnchannels(self.stream.channels)
            wf.setsampwidth(self.stream.sample_width)
            wf.setframerate(self.stream.sample_rate)
            for chunk in frames:
                wf.writeframes(chunk)
        return buffer.getvalue()


class PyAudioMicrophone(MicrophoneSource):
    """Microphone access through PyAudio.

    Opening the input device is the desktop equivalent of a permission prompt:
    PortAudio errors are mapped onto the microphone error reasons.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        channels: int = 1,
        device_index: Optional[int] = None,
    ):
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.device_index = device_index

    def is_supported(self) -> bool:
        return importlib.util.find_spec("pyaudio") is not None

    async def request_stream(self) -> PyAudioStream:
        if not self.is_supported():
            raise CapabilityUnsupported("PyAudio is not installed")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._open, loop)

    def _open(self, loop: asyncio.AbstractEventLoop) -> PyAudioStream:
        try:
            return PyAudioStream(
                loop,
                sample_rate=self.sample_rate,
                chunk_size=self.chunk_size,
                channels=self.channels,
                device_index=self.device_index,
            )
        except OSError as e:
            raise self._map_error(e) from e
        except Exception as e:
            raise MicrophoneError(f"Failed to open microphone: {e}") from e

    @staticmethod
    def _map_error(error: OSError) -> MicrophoneError:
        message = str(error)
        if error.errno in (errno.EACCES, errno.EPERM):
            return PermissionDenied(f"Microphone access denied: {message}")
        # PortAudio: paInvalidDevice (-9996), paDeviceUnavailable (-9985)
        if error.errno in (-9996, -9985) or "device" in message.lower():
            return DeviceNotFound(f"No microphone found: {message}")
        return MicrophoneError(f"Failed to open microphone: {message}")

    def create_encoder(self, stream: PyAudioStream) -> WavEncoder:
        return WavEncoder(stream)

    def create_analyser(self, stream: PyAudioStream) -> SpectrumAnalyser:
        return SpectrumAnalyser(stream, fft_size=self.chunk_size)
