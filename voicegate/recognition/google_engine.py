"""Google Speech-to-Text streaming recognition engine."""

import asyncio
import logging
import threading
from typing import Dict, Iterator, Optional

from google.api_core import exceptions as gax_exceptions
from google.cloud import speech
from google.oauth2 import service_account

from ..models.events import (
    EngineErrorCode,
    RecognitionAlternative,
    RecognitionEvent,
    RecognitionOptions,
)
from .base import AbstractRecognitionEngine

logger = logging.getLogger(__name__)


class GoogleStreamingEngine(AbstractRecognitionEngine):
    """Continuous recognizer on top of ``streaming_recognize``.

    The blocking gRPC stream runs in a daemon thread reading the microphone
    with PyAudio; events are handed to the event loop with
    ``call_soon_threadsafe``. The service closes streams after a few minutes,
    which surfaces here as a normal end event.
    """

    def __init__(self,
                 loop: asyncio.AbstractEventLoop,
                 credentials_path: Optional[str] = None,
                 sample_rate: int = 16000,
                 chunk_size: int = 1024,
                 device_index: Optional[int] = None):
        """Initialize Google streaming engine.

        Args:
            loop: Event loop receiving the engine events
            credentials_path: Service account JSON file; None uses application default credentials
            sample_rate: Microphone sample rate in Hz
            chunk_size: Samples per request
            device_index: PyAudio input device, None for the default one
        """
        super().__init__()
        self.loop = loop
        self.credentials_path = credentials_path
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.device_index = device_index
        self.service_name = "Google Speech-to-Text"

        self.client = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._calls: Dict[int, object] = {}

    def is_available(self) -> bool:
        try:
            self._get_client()
        except Exception as e:
            logger.warning(f"{self.service_name} not available: {e}")
            return False
        return True

    def _get_client(self):
        if self.client is None:
            if self.credentials_path:
                logger.info(f"Loading Google credentials from: {self.credentials_path}")
                credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
                self.client = speech.SpeechClient(credentials=credentials)
            else:
                self.client = speech.SpeechClient()
        return self.client

    def start(self, options: RecognitionOptions) -> None:
        if self._thread and self._thread.is_alive():
            if not self._stop_event.is_set():
                raise RuntimeError("Recognition already started")
            # Still draining after stop(); its events belong to an old session
            logger.info(f"Detaching stopped {self.service_name} stream ({self._thread.name})")

        session = self._new_session()
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(options, self._stop_event, session), daemon=True
        )
        self._thread.name = f"RecognitionEngineThread-{session}"
        self._thread.start()
        logger.info(f"{self.service_name} streaming started ({options.language})")

    def stop(self) -> None:
        self._stop_event.set()

    def abort(self) -> None:
        """Stop and cancel the gRPC call instead of waiting for it to drain."""
        self._stop_event.set()
        call = self._calls.get(self.session)
        if call is not None and hasattr(call, "cancel"):
            call.cancel()
            logger.info(f"{self.service_name} streaming call cancelled")

    def _post(self, session: int, callback, *args) -> None:
        try:
            self.loop.call_soon_threadsafe(self._deliver, session, callback, *args)
        except RuntimeError:
            logger.debug("Event loop closed, dropping recognition event")

    def _streaming_config(self, options: RecognitionOptions):
        return speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=self.sample_rate,
                language_code=options.language,
            ),
            interim_results=options.interim_results,
            single_utterance=not options.continuous,
        )

    def _audio_requests(self, stream, stop_event: threading.Event) -> Iterator:
        while not stop_event.is_set():
            chunk = stream.read(self.chunk_size, exception_on_overflow=False)
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    def _run(self, options: RecognitionOptions, stop_event: threading.Event, session: int) -> None:
        """Internal method: streaming loop in background thread."""
        import pyaudio

        pyaudio_instance = None
        stream = None
        try:
            client = self._get_client()
            pyaudio_instance = pyaudio.PyAudio()
            stream = pyaudio_instance.open(
                format=pyaudio.paInt16,
                channels=1,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.device_index,
                frames_per_buffer=self.chunk_size,
            )
            responses = client.streaming_recognize(
                self._streaming_config(options),
                self._audio_requests(stream, stop_event),
            )
            self._calls[session] = responses
            for response in responses:
                if stop_event.is_set():
                    break
                results = [
                    RecognitionAlternative(
                        transcript=result.alternatives[0].transcript,
                        is_final=result.is_final,
                        confidence=result.alternatives[0].confidence or None,
                    )
                    for result in response.results
                    if result.alternatives
                ]
                if results:
                    self._post(session, self._emit_result, RecognitionEvent(results=results))
        except (gax_exceptions.DeadlineExceeded, gax_exceptions.OutOfRange) as e:
            logger.info(f"{self.service_name} stream ended by service: {e}")
        except gax_exceptions.Cancelled:
            logger.info(f"{self.service_name} stream cancelled")
        except (gax_exceptions.PermissionDenied, gax_exceptions.Unauthenticated) as e:
            self._post(session, self._emit_error, EngineErrorCode.SERVICE_NOT_ALLOWED, str(e))
        except gax_exceptions.ServiceUnavailable as e:
            self._post(session, self._emit_error, EngineErrorCode.NETWORK, str(e))
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"{self.service_name} API call error: {e}")
            self._post(session, self._emit_error, EngineErrorCode.UNKNOWN, str(e))
        except OSError as e:
            self._post(session, self._emit_error, EngineErrorCode.AUDIO_CAPTURE, str(e))
        except Exception as e:
            logger.error(f"{self.service_name} streaming failed: {e}", exc_info=True)
            self._post(session, self._emit_error, EngineErrorCode.UNKNOWN, str(e))
        finally:
            self._calls.pop(session, None)
            if stream:
                stream.stop_stream()
                stream.close()
            if pyaudio_instance:
                pyaudio_instance.terminate()
            self._post(session, self._emit_end)
