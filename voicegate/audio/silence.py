"""Restartable silence countdown."""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SilenceTimer:
    """Fires ``on_expire`` after ``timeout_seconds`` without sound.

    Only one expiry is ever pending: arming again replaces the previous one.
    The expiry is skipped when ``is_active`` reports the session is no longer
    recording.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        timeout_seconds: float,
        on_expire: Callable[[], None],
        is_active: Callable[[], bool],
    ):
        self.loop = loop
        self.timeout_seconds = timeout_seconds
        self.on_expire = on_expire
        self.is_active = is_active
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self) -> None:
        self.clear()
        self._handle = self.loop.call_later(self.timeout_seconds, self._expire)

    def reset_on_sound(self) -> None:
        self.arm()

    def clear(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _expire(self) -> None:
        self._handle = None
        if not self.is_active():
            logger.debug("Silence timer expired after session ended, ignoring")
            return
        logger.info(f"🔇 No sound for {self.timeout_seconds:.1f}s, stopping recording")
        self.on_expire()
