"""Abstract base class for continuous speech-recognition engines."""

from abc import ABC, abstractmethod
from typing import Callable, Optional
import logging

from ..models.events import (
    EngineErrorCode,
    EngineErrorEvent,
    RecognitionEvent,
    RecognitionOptions,
)

logger = logging.getLogger(__name__)


class AbstractRecognitionEngine(ABC):
    """Continuous recognizer producing transcript, error and end events.

    The engine may end its session on its own at any time (network hiccup,
    service time limit); it then emits an end event. Handlers are invoked on
    the event loop thread.

    Every ``start()`` opens a new session. Events still in flight from a
    session that was stopped and then replaced by a newer one are dropped,
    so handlers only ever see the current session.
    """

    def __init__(self):
        self.on_result: Optional[Callable[[RecognitionEvent], None]] = None
        self.on_error: Optional[Callable[[EngineErrorEvent], None]] = None
        self.on_end: Optional[Callable[[], None]] = None
        self.session = 0

    @abstractmethod
    def is_available(self) -> bool:
        """True when the engine can run on this platform."""
        pass

    @abstractmethod
    def start(self, options: RecognitionOptions) -> None:
        """Start a recognition session."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop the current session; an end event follows."""
        pass

    def abort(self) -> None:
        """Stop immediately, discarding pending results."""
        self.stop()

    def _new_session(self) -> int:
        self.session += 1
        return self.session

    def _deliver(self, session: int, callback: Callable, *args) -> None:
        """Run ``callback`` on the loop thread unless ``session`` was superseded."""
        if session != self.session:
            logger.debug(f"Dropping event from recognition session {session} "
                         f"(current {self.session})")
            return
        callback(*args)

    def _emit_result(self, event: RecognitionEvent) -> None:
        if self.on_result:
            self.on_result(event)

    def _emit_error(self, code: EngineErrorCode, message: str = "") -> None:
        if self.on_error:
            self.on_error(EngineErrorEvent(code=code, message=message))

    def _emit_end(self) -> None:
        if self.on_end:
            self.on_end()
