"""Energy polling loop that keeps the silence timer alive while sound is present."""

import asyncio
import logging
from typing import Callable, Optional

from .base import FrequencyAnalyser

logger = logging.getLogger(__name__)


class EnergyMonitor:
    """Samples the analyser once per tick while the session is recording.

    Each tick re-checks ``is_active`` before sampling and before re-scheduling,
    so a callback that was already queued when the session ended does nothing.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        analyser: FrequencyAnalyser,
        threshold: float,
        on_sound: Callable[[], None],
        is_active: Callable[[], bool],
        tick_seconds: float = 0.016,
    ):
        self.loop = loop
        self.threshold = threshold
        self.on_sound = on_sound
        self.is_active = is_active
        self.tick_seconds = tick_seconds

        self._analyser: Optional[FrequencyAnalyser] = analyser
        self._handle: Optional[asyncio.TimerHandle] = None
        self.ticks = 0
        self.last_energy = 0.0

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._analyser is None:
            raise RuntimeError("Energy monitor already stopped")
        if self._handle is None:
            self._schedule()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._analyser = None

    def _schedule(self) -> None:
        self._handle = self.loop.call_later(self.tick_seconds, self._tick)

    def _tick(self) -> None:
        self._handle = None
        if self._analyser is None or not self.is_active():
            return

        self.ticks += 1
        try:
            self.last_energy = self._analyser.sample()
        except Exception as e:
            logger.error(f"Energy sampling failed, monitor stopped: {e}", exc_info=True)
            self._analyser = None
            return

        if self.last_energy > self.threshold:
            self.on_sound()

        if self._analyser is not None and self.is_active():
            self._schedule()
