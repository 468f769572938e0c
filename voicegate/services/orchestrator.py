"""Voice capture orchestrator: wake word -> recording -> transcription.

State machine (see ``voicegate.models.state.TRANSITIONS``)::

    UNINITIALIZED -> IDLE -> LISTENING -> AWAITING_PERMISSION -> RECORDING
        -> TRANSCRIBING -> LISTENING ...        any active state -> IDLE on stop

Every transition goes through :meth:`VoiceCaptureOrchestrator._transition`,
which rejects events that are illegal in the current state. Asynchronous
continuations (permission grants, transcription responses) capture the epoch
counter, which ``stop``, ``cancel_listening`` and ``dispose`` increment, and
discard themselves when it changed.
"""

import asyncio
import logging
from typing import Optional, Set, Tuple

from ..audio.base import AudioStream, MicrophoneSource
from ..audio.session import RecordingSession
from ..config import VoiceGateConfig
from ..errors import MicrophoneError
from ..models.audio import AudioPayload, SessionResult, StopReason
from ..models.snapshot import VoiceSnapshot
from ..models.state import OrchestratorEvent, OrchestratorState, PermissionStatus, next_state
from ..models.transcription import ConversationRecord
from ..recognition.base import AbstractRecognitionEngine
from ..recognition.listener import WakeWordListener
from ..transcription.base import AbstractTranscriptionBackend
from ..transcription.dispatcher import TranscriptionDispatcher
from .publisher import StatusPublisher

logger = logging.getLogger(__name__)

State = OrchestratorState
Event = OrchestratorEvent

ACTIVE_STATES = (
    State.LISTENING,
    State.AWAITING_PERMISSION,
    State.RECORDING,
    State.TRANSCRIBING,
)

MICROPHONE_STATUS = {
    "not-allowed": "Microphone permission denied",
    "not-found": "No microphone found",
    "not-supported": "Microphone capture not supported",
}


class VoiceCaptureOrchestrator:
    """Coordinates the wake-word listener, recording sessions and transcription.

    Must be created on the thread running ``loop`` (or inside a coroutine when
    ``loop`` is omitted). Instances share nothing; give each one its own
    publisher topic root.
    """

    def __init__(
        self,
        config: VoiceGateConfig,
        engine: AbstractRecognitionEngine,
        microphone: MicrophoneSource,
        transcriber: AbstractTranscriptionBackend,
        publisher: Optional[StatusPublisher] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.config = config
        self.loop = loop or asyncio.get_running_loop()
        self.microphone = microphone
        self.publisher = publisher

        self.threshold = float(config.get('silence.threshold', 20.0))
        self.silence_timeout = float(config.get('silence.timeout_seconds', 2.0))
        self.tick_seconds = float(config.get('silence.tick_seconds', 0.016))

        self._state = State.UNINITIALIZED
        self._status = "Not initialized"
        self._error: Optional[str] = None
        self._permission = PermissionStatus.UNKNOWN
        self._epoch = 0
        self._disposed = False
        self._starting = False
        self._session: Optional[RecordingSession] = None
        self._tasks: Set[asyncio.Task] = set()

        self.listener = WakeWordListener(
            self.loop,
            engine,
            phrases=config.get_wake_phrases(),
            on_wake=self._on_wake_phrase,
            on_status=self._set_status,
            request_permission=self._check_permission,
            microphone_supported=microphone.is_supported,
            language=config.get('wake_word.language', 'zh-CN'),
            restart_delay=float(config.get('wake_word.restart_delay_seconds', 0.3)),
        )
        self.dispatcher = TranscriptionDispatcher(
            transcriber,
            on_status=self._on_transcription_status,
            on_record=self._on_record,
        )

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def status(self) -> str:
        return self._status

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def result_text(self) -> str:
        return self.dispatcher.result_text

    @property
    def history(self) -> Tuple[ConversationRecord, ...]:
        return tuple(self.dispatcher.history)

    @property
    def permission_status(self) -> PermissionStatus:
        return self._permission

    @property
    def is_recording(self) -> bool:
        return self._session is not None and self._session.is_recording

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    @property
    def disposed(self) -> bool:
        return self._disposed

    def snapshot(self) -> VoiceSnapshot:
        return VoiceSnapshot(
            state=self._state,
            status=self._status,
            result_text=self.result_text,
            error=self._error,
            permission=self._permission,
            is_recording=self.is_recording,
            history=self.history,
        )

    # ------------------------------------------------------------------
    # Caller operations
    # ------------------------------------------------------------------

    def init(self) -> bool:
        """Validate platform capabilities. Idempotent after success."""
        if self._disposed:
            return False
        if self._state not in (State.UNINITIALIZED, State.ERROR):
            return True

        if self.listener.init():
            self._transition(Event.INIT_SUCCEEDED)
            self._set_status("Initialized")
            return True

        self._error = self._status
        self._transition(Event.INIT_FAILED)
        return False

    async def start(self) -> bool:
        """Start listening for the wake phrase; resolves to whether listening is active."""
        if self._disposed:
            return False
        if self._state in (State.UNINITIALIZED, State.ERROR) and not self.init():
            return False
        if self._state is not State.IDLE:
            logger.info(f"start() ignored in state {self._state.value}")
            return self._state in ACTIVE_STATES
        if self._starting:
            logger.info("start() already in progress")
            return False

        epoch = self._epoch
        self._starting = True
        self._set_status("Requesting microphone permission")
        try:
            started = await self.listener.start()
        finally:
            self._starting = False

        if epoch != self._epoch or self._disposed:
            logger.info("Orchestrator stopped while starting")
            return False
        if not started:
            return False

        self._transition(Event.LISTEN_STARTED)
        self._set_status("Listening for wake phrase")
        return True

    def stop(self) -> None:
        """Stop listening and discard any recording in progress."""
        self._teardown(abort=False)

    def cancel_listening(self) -> None:
        """Like :meth:`stop`, but aborts the recognition engine."""
        self._teardown(abort=True)

    def stop_recording(self) -> bool:
        """End the current utterance now; its audio is still transcribed."""
        if self._session is None or not self._session.is_recording:
            return False
        return self._session.stop(StopReason.EXPLICIT)

    def dispose(self) -> None:
        """Terminal teardown, safe from any state. Every later call is a no-op."""
        if self._disposed:
            return
        logger.info("Disposing voice capture orchestrator")
        self._epoch += 1
        self._disposed = True
        self.listener.dispose()
        self._abort_session()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._transition(Event.STOP)
        self._set_status("Disposed")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, event: OrchestratorEvent) -> bool:
        target = next_state(self._state, event)
        if target is None:
            logger.debug(f"Ignoring {event.value} in state {self._state.value}")
            return False
        if target is not self._state:
            logger.info(f"Voice: {self._state.name} → {target.name} ({event.value})")
        self._state = target
        self._publish()
        return True

    def _teardown(self, abort: bool) -> None:
        if self._disposed:
            return
        self._epoch += 1
        if abort:
            self.listener.cancel()
        else:
            self.listener.stop()
        self._abort_session()
        if self._transition(Event.STOP):
            self._set_status("Stopped")

    def _abort_session(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            session.abort()

    # ------------------------------------------------------------------
    # Microphone
    # ------------------------------------------------------------------

    async def _request_stream(self) -> AudioStream:
        """Open the microphone, recording the outcome in the permission status."""
        self._error = None
        try:
            stream = await self.microphone.request_stream()
        except MicrophoneError as e:
            self._microphone_failed(e)
            raise
        except Exception as e:
            error = MicrophoneError(str(e))
            self._microphone_failed(error)
            raise error from e

        self._permission = PermissionStatus.GRANTED
        logger.info("Microphone access granted")
        self._publish()
        return stream

    def _microphone_failed(self, error: MicrophoneError) -> None:
        self._permission = PermissionStatus.DENIED
        self._error = MICROPHONE_STATUS.get(error.reason, f"Failed to access microphone: {error}")
        logger.warning(f"Microphone access failed ({error.reason}): {error}")
        self._set_status(self._error)

    async def _check_permission(self) -> bool:
        try:
            stream = await self._request_stream()
        except MicrophoneError:
            return False
        stream.stop()
        return True

    # ------------------------------------------------------------------
    # Wake phrase -> recording
    # ------------------------------------------------------------------

    def _on_wake_phrase(self, transcript: str) -> None:
        if self._disposed:
            return
        if not self._transition(Event.WAKE_PHRASE):
            logger.info(f"Wake phrase ignored in state {self._state.value}")
            return
        self._set_status("Wake phrase detected")
        self._spawn(self._begin_recording(self._epoch))

    async def _begin_recording(self, epoch: int) -> None:
        try:
            stream = await self._request_stream()
        except MicrophoneError:
            if epoch == self._epoch:
                self._transition(Event.PERMISSION_DENIED)
            return

        if epoch != self._epoch or self._state is not State.AWAITING_PERMISSION:
            logger.info("Microphone granted after cancellation, releasing stream")
            stream.stop()
            return

        self._transition(Event.PERMISSION_GRANTED)
        session = RecordingSession(
            self.loop,
            self.microphone,
            on_finished=self._on_session_finished,
            threshold=self.threshold,
            silence_timeout=self.silence_timeout,
            tick_seconds=self.tick_seconds,
        )
        self._session = session
        self._set_status("Recording")
        try:
            session.start(stream)
        except Exception as e:
            logger.error(f"Failed to start recording: {e}", exc_info=True)
            session.abort()
            if self._session is session:
                self._session = None
                self._error = f"Recording failed: {e}"
                self._transition(Event.RECORDING_DISCARDED)
                self._set_status(self._error)

    def _on_session_finished(self, session: RecordingSession, result: SessionResult) -> None:
        if session is not self._session:
            logger.debug("Ignoring result of a stale recording session")
            return
        self._session = None
        if self._state is not State.RECORDING:
            return

        if result.error is not None:
            self._error = f"Recording failed: {result.error}"
            self._transition(Event.RECORDING_DISCARDED)
            self._set_status(self._error)
            return

        if result.payload is None or result.payload.is_empty:
            self._transition(Event.RECORDING_DISCARDED)
            self._set_status("No audio captured")
            return

        self._transition(Event.RECORDING_FINISHED)
        self._set_status("Transcribing")
        self._spawn(self._transcribe(result.payload, self._epoch))

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------

    async def _transcribe(self, payload: AudioPayload, epoch: int) -> None:
        outcome = await self.dispatcher.submit(
            payload, is_current=lambda: epoch == self._epoch and not self._disposed
        )
        if epoch != self._epoch or self._disposed:
            return
        if outcome is None:
            self._set_status("Previous transcription still in progress, utterance dropped")
        self._transition(Event.TRANSCRIPTION_FINISHED)

    def _on_transcription_status(self, status: str, error: Optional[str] = None) -> None:
        self._error = error
        self._set_status(status)

    def _on_record(self, record: ConversationRecord) -> None:
        if self.publisher is None:
            return
        try:
            self.publisher.publish_record(record)
        except Exception as e:
            logger.error(f"Error publishing conversation record: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_status(self, status: str) -> None:
        self._status = status
        self._publish()

    def _publish(self) -> None:
        if self.publisher is None:
            return
        try:
            self.publisher.publish_snapshot(self.snapshot())
        except Exception as e:
            logger.error(f"Error publishing status: {e}", exc_info=True)

    def _spawn(self, coro) -> asyncio.Task:
        task = self.loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task failed: {error}", exc_info=error)
