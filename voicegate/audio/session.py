"""Recording session: one microphone stream and one encoder per utterance."""

import asyncio
import logging
from typing import Callable, List, Optional

from ..errors import EncodingFailure
from ..models.audio import AudioPayload, SessionResult, StopReason
from .base import AudioEncoder, AudioStream, FrequencyAnalyser, MicrophoneSource
from .monitor import EnergyMonitor
from .silence import SilenceTimer

logger = logging.getLogger(__name__)


class RecordingSession:
    """Owns the stream, encoder, energy monitor and silence timer of one utterance.

    Lifecycle: ``inactive`` -> ``recording`` -> ``stopping`` -> ``closed``.
    Whatever ends the session (silence, explicit stop, encoder error, abort),
    every resource is released before ``on_finished`` is called, and it is
    called at most once. ``abort`` releases without calling it.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        microphone: MicrophoneSource,
        on_finished: Callable[["RecordingSession", SessionResult], None],
        threshold: float = 20.0,
        silence_timeout: float = 2.0,
        tick_seconds: float = 0.016,
    ):
        self.loop = loop
        self.microphone = microphone
        self.on_finished = on_finished
        self.threshold = threshold
        self.silence_timeout = silence_timeout
        self.tick_seconds = tick_seconds

        self.state = "inactive"
        self.chunks: List[bytes] = []
        self.stop_reason: Optional[StopReason] = None
        self.started_at: Optional[float] = None

        self.stream: Optional[AudioStream] = None
        self.encoder: Optional[AudioEncoder] = None
        self.analyser: Optional[FrequencyAnalyser] = None
        self.monitor: Optional[EnergyMonitor] = None
        self.timer: Optional[SilenceTimer] = None

    @property
    def is_recording(self) -> bool:
        return self.state == "recording"

    @property
    def closed(self) -> bool:
        return self.state == "closed"

    def start(self, stream: AudioStream) -> None:
        """Start capturing ``stream``."""
        if self.state != "inactive":
            raise RuntimeError(f"Recording session cannot start from state '{self.state}'")

        self.chunks = []
        self.stream = stream
        self.encoder = self.microphone.create_encoder(stream)
        self.encoder.on_data = self._on_data
        self.encoder.on_stop = self._on_stop
        self.encoder.on_error = self._on_error

        self.analyser = self.microphone.create_analyser(stream)
        self.timer = SilenceTimer(
            self.loop,
            self.silence_timeout,
            on_expire=lambda: self.stop(StopReason.SILENCE_TIMEOUT),
            is_active=lambda: self.is_recording,
        )
        self.monitor = EnergyMonitor(
            self.loop,
            self.analyser,
            threshold=self.threshold,
            on_sound=self.timer.reset_on_sound,
            is_active=lambda: self.is_recording,
            tick_seconds=self.tick_seconds,
        )

        self.state = "recording"
        self.started_at = self.loop.time()
        self.monitor.start()
        self.timer.arm()
        logger.info("🎙️ Recording started")

        try:
            self.encoder.start()
        except Exception as e:
            self._on_error(EncodingFailure(f"Encoder failed to start: {e}"))

    def stop(self, reason: StopReason = StopReason.EXPLICIT) -> bool:
        """Ask the encoder to finish; returns False when not recording."""
        if self.state != "recording":
            return False

        logger.info(f"Stopping recording ({reason.value})")
        self.state = "stopping"
        self.stop_reason = reason
        self.timer.clear()
        self.monitor.stop()

        try:
            self.encoder.stop()
        except Exception as e:
            self._on_error(EncodingFailure(f"Encoder failed to stop: {e}"))
        return True

    def abort(self) -> None:
        """Release everything without handing over a result."""
        if self.state == "closed":
            return
        logger.info("Recording session aborted")
        self.chunks = []
        self._release()

    def _on_data(self, chunk: bytes) -> None:
        if self.state in ("recording", "stopping") and chunk:
            self.chunks.append(chunk)

    def _on_stop(self) -> None:
        if self.state == "closed":
            return

        payload = AudioPayload(
            data=b''.join(self.chunks),
            mime_type=self.encoder.mime_type,
            chunk_count=len(self.chunks),
        )
        reason = self.stop_reason or StopReason.EXPLICIT
        duration = self._elapsed()
        self.chunks = []
        self._release()

        logger.info(f"Recording finished: {len(payload.data)} bytes in "
                    f"{payload.chunk_count} chunks, {duration:.1f}s ({reason.value})")
        self._finish(SessionResult(reason=reason, payload=payload, duration_seconds=duration))

    def _on_error(self, error: Exception) -> None:
        if self.state == "closed":
            return

        logger.error(f"Recording failed: {error}")
        duration = self._elapsed()
        self.chunks = []
        self._release()
        self._finish(SessionResult(reason=StopReason.ERROR, error=error, duration_seconds=duration))

    def _elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return self.loop.time() - self.started_at

    def _release(self) -> None:
        """Stop tracks, encoder, analysis context and timer, in that order."""
        self.state = "closed"
        # No expiry may fire against released resources
        if self.timer:
            self.timer.clear()
        if self.monitor:
            self.monitor.stop()

        if self.stream:
            try:
                self.stream.stop()
            except Exception as e:
                logger.warning(f"Error stopping audio stream: {e}")

        if self.encoder:
            self.encoder.release()
            try:
                if self.encoder.state == "recording":
                    self.encoder.stop()
            except Exception as e:
                logger.warning(f"Error stopping encoder: {e}")

        if self.analyser:
            try:
                self.analyser.close()
            except Exception as e:
                logger.warning(f"Error closing analyser: {e}")

        if self.timer:
            self.timer.clear()

        self.stream = None
        self.encoder = None
        self.analyser = None
        self.monitor = None
        self.timer = None

    def _finish(self, result: SessionResult) -> None:
        try:
            self.on_finished(self, result)
        except Exception as e:
            logger.error(f"Error handling finished recording: {e}", exc_info=True)
