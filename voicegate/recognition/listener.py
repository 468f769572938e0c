"""Wake-word listener on top of a continuous recognition engine."""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from ..errors import EngineTransientError
from ..models.events import (
    EngineErrorCode,
    EngineErrorEvent,
    RecognitionEvent,
    RecognitionOptions,
)
from .base import AbstractRecognitionEngine

logger = logging.getLogger(__name__)


ERROR_STATUS = {
    EngineErrorCode.NOT_ALLOWED: "Microphone permission denied",
    EngineErrorCode.SERVICE_NOT_ALLOWED: "Speech recognition service unavailable",
    EngineErrorCode.NETWORK: "Network error during speech recognition",
    EngineErrorCode.NO_SPEECH: "No speech detected",
    EngineErrorCode.AUDIO_CAPTURE: "No microphone was found",
    EngineErrorCode.ABORTED: "Speech recognition aborted",
}


class WakeWordListener:
    """Keeps the engine running and reports wake phrase matches.

    ``listening`` is the intent flag: while it is set, every end of the
    engine session (natural or after an error) schedules a restart after
    ``restart_delay`` seconds. A pending restart is replaced by a newer one.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        engine: AbstractRecognitionEngine,
        phrases: List[str],
        on_wake: Callable[[str], None],
        on_status: Callable[[str], None],
        request_permission: Callable[[], Awaitable[bool]],
        microphone_supported: Callable[[], bool],
        language: str = "zh-CN",
        restart_delay: float = 0.3,
    ):
        self.loop = loop
        self.engine = engine
        self.phrases = list(phrases)
        self.on_wake = on_wake
        self.on_status = on_status
        self.request_permission = request_permission
        self.microphone_supported = microphone_supported
        self.options = RecognitionOptions(language=language, continuous=True, interim_results=True)
        self.restart_delay = restart_delay

        self.initialized = False
        self.listening = False
        self.restarts = 0
        self._generation = 0
        self.engine_active = False
        self._restart_handle: Optional[asyncio.TimerHandle] = None

    def init(self) -> bool:
        """Check that the engine and the microphone API are present."""
        if self.initialized:
            return True

        if not self.microphone_supported():
            logger.error("Microphone capture is not supported on this platform")
            self.on_status("Microphone capture not supported")
            return False

        if not self.engine.is_available():
            logger.error("Speech recognition engine is not available")
            self.on_status("Speech recognition not supported")
            return False

        self.engine.on_result = self._on_result
        self.engine.on_error = self._on_error
        self.engine.on_end = self._on_end
        self.initialized = True
        logger.info(f"Wake-word listener initialized, phrases={self.phrases}, "
                    f"language={self.options.language}")
        return True

    async def start(self) -> bool:
        """Request microphone permission, then start continuous recognition."""
        if not self.initialized and not self.init():
            return False
        if self.listening:
            return True

        self._generation += 1
        generation = self._generation
        self.listening = True

        granted = await self.request_permission()
        if generation != self._generation or not self.listening:
            logger.info("Listener stopped while waiting for microphone permission")
            return False
        if not granted:
            self.listening = False
            return False

        try:
            self.engine.start(self.options)
            self.engine_active = True
        except Exception as e:
            logger.error(f"Failed to start recognition engine: {e}")
            self.listening = False
            self.on_status(f"Failed to start speech recognition: {e}")
            return False

        logger.info("👂 Listening for wake phrase")
        return True

    def stop(self) -> None:
        self._halt(abort=False)

    def cancel(self) -> None:
        self._halt(abort=True)

    def dispose(self) -> None:
        self._halt(abort=True)
        if self.initialized:
            self.engine.on_result = None
            self.engine.on_error = None
            self.engine.on_end = None
            self.initialized = False

    def _halt(self, abort: bool) -> None:
        self._generation += 1
        was_listening = self.listening
        self.listening = False
        self.engine_active = False
        self._cancel_restart()
        if not was_listening:
            return
        try:
            if abort:
                self.engine.abort()
            else:
                self.engine.stop()
        except Exception as e:
            logger.warning(f"Error stopping recognition engine: {e}")
        logger.info("Wake-word listener stopped")

    def match(self, transcript: str) -> Optional[str]:
        """Return the wake phrase contained in ``transcript``, if any."""
        for phrase in self.phrases:
            if phrase in transcript:
                return phrase
        return None

    def _on_result(self, event: RecognitionEvent) -> None:
        latest = event.latest
        if latest is None or not self.listening:
            return
        logger.debug(f"Heard: '{latest.transcript}' (final={latest.is_final})")
        phrase = self.match(latest.transcript)
        if phrase:
            logger.info(f"✅ Wake phrase '{phrase}' detected in '{latest.transcript}'")
            self.on_wake(latest.transcript)

    def _on_error(self, event: EngineErrorEvent) -> None:
        status = ERROR_STATUS.get(event.code, f"Speech recognition error: {event.code.value}")
        error = EngineTransientError(event.code.value, event.message)
        logger.warning(f"Recognition engine error {error.code}: {error}")
        if not self._session_finished():
            return
        if self.listening:
            self.on_status(status)
            self._schedule_restart()

    def _on_end(self) -> None:
        if not self._session_finished():
            return
        if self.listening:
            logger.debug("Recognition session ended, scheduling restart")
            self._schedule_restart()

    def _session_finished(self) -> bool:
        """Mark the engine session we started as over; False when none was running."""
        if not self.engine_active:
            logger.debug("Ignoring event for a recognition session that is not ours")
            return False
        self.engine_active = False
        return True

    def _schedule_restart(self) -> None:
        self._cancel_restart()
        self._restart_handle = self.loop.call_later(self.restart_delay, self._restart)

    def _cancel_restart(self) -> None:
        if self._restart_handle is not None:
            self._restart_handle.cancel()
            self._restart_handle = None

    @property
    def restart_pending(self) -> bool:
        return self._restart_handle is not None

    def _restart(self) -> None:
        self._restart_handle = None
        if not self.listening or self.engine_active:
            return
        self.restarts += 1
        try:
            self.engine.start(self.options)
            self.engine_active = True
            logger.info(f"Recognition engine restarted ({self.restarts})")
        except Exception as e:
            logger.warning(f"Recognition restart failed, retrying: {e}")
            self._schedule_restart()
