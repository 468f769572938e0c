"""Pytest configuration and fixtures for voicegate tests."""

import asyncio
import logging
import uuid
from types import SimpleNamespace
from typing import List, Optional

import numpy as np
import pytest

from voicegate.audio.base import AudioEncoder, AudioStream, FrequencyAnalyser, MicrophoneSource
from voicegate.config import VoiceGateConfig
from voicegate.errors import EncodingFailure
from voicegate.models.events import (
    EngineErrorCode,
    RecognitionAlternative,
    RecognitionEvent,
    RecognitionOptions,
)
from voicegate.recognition.base import AbstractRecognitionEngine
from voicegate.services.orchestrator import VoiceCaptureOrchestrator
from voicegate.services.publisher import StatusPublisher
from voicegate.transcription.base import AbstractTranscriptionBackend


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without hardware or network")
    config.addinivalue_line("markers", "integration: real capture classes with PyAudio mocked")
    config.addinivalue_line("markers", "hardware: needs a real microphone")


class FakeStream(AudioStream):
    """Microphone stream that only records whether it was stopped."""

    def __init__(self):
        self._active = True
        self.stop_calls = 0

    @property
    def active(self) -> bool:
        return self._active

    def stop(self) -> None:
        self.stop_calls += 1
        self._active = False


class FakeEncoder(AudioEncoder):
    """Encoder emitting preset chunks, then the stop event, on the next loop iteration."""

    mime_type = "audio/webm"

    def __init__(self, stream, chunks: List[bytes], fail_on_stop: bool = False):
        super().__init__(stream)
        self.loop = asyncio.get_running_loop()
        self.chunks = list(chunks)
        self.fail_on_stop = fail_on_stop
        self.started = False
        self.stop_calls = 0
        self.released = False

    def start(self) -> None:
        self.started = True
        self.state = "recording"

    def stop(self) -> None:
        if self.state != "recording":
            return
        self.state = "inactive"
        self.stop_calls += 1
        self.loop.call_soon(self._finish)

    def _finish(self) -> None:
        if self.fail_on_stop:
            if self.on_error:
                self.on_error(EncodingFailure("encoder crashed"))
            return
        for chunk in self.chunks:
            if self.on_data:
                self.on_data(chunk)
        if self.on_stop:
            self.on_stop()

    def fail(self, error: Exception) -> None:
        """Simulate an encoder-level failure while recording."""
        self.state = "inactive"
        if self.on_error:
            self.on_error(error)

    def release(self) -> None:
        self.released = True
        super().release()


class FakeAnalyser(FrequencyAnalyser):
    """Analyser returning a settable energy level; sampling after close is an error."""

    def __init__(self, level: float = 0.0):
        self.level = level
        self.samples = 0
        self.closed = False

    def sample(self) -> float:
        if self.closed:
            raise AssertionError("analyser sampled after close")
        self.samples += 1
        return self.level

    def close(self) -> None:
        self.closed = True


class FakeMicrophone(MicrophoneSource):
    """Microphone whose permission outcome and timing are controlled by the test."""

    def __init__(self):
        self.supported = True
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Future] = None
        self.chunks: List[bytes] = [b"chunk-1", b"chunk-2"]
        self.energy = 0.0
        self.fail_on_stop = False
        self.requests = 0
        self.streams: List[FakeStream] = []
        self.encoders: List[FakeEncoder] = []
        self.analysers: List[FakeAnalyser] = []

    def is_supported(self) -> bool:
        return self.supported

    async def request_stream(self) -> FakeStream:
        self.requests += 1
        if self.gate is not None:
            await self.gate
        if self.error is not None:
            raise self.error
        stream = FakeStream()
        self.streams.append(stream)
        return stream

    def create_encoder(self, stream) -> FakeEncoder:
        encoder = FakeEncoder(stream, self.chunks, fail_on_stop=self.fail_on_stop)
        self.encoders.append(encoder)
        return encoder

    def create_analyser(self, stream) -> FakeAnalyser:
        analyser = FakeAnalyser(self.energy)
        self.analysers.append(analyser)
        return analyser


class FakeEngine(AbstractRecognitionEngine):
    """Recognition engine driven by the test."""

    def __init__(self):
        super().__init__()
        self.available = True
        self.running = False
        self.starts = 0
        self.stops = 0
        self.aborts = 0
        self.fail_start = 0
        self.options: Optional[RecognitionOptions] = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    def is_available(self) -> bool:
        return self.available

    def start(self, options: RecognitionOptions) -> None:
        if self.fail_start:
            self.fail_start -= 1
            raise RuntimeError("engine busy")
        if self.running:
            raise RuntimeError("Recognition already started")
        self.loop = asyncio.get_running_loop()
        self.options = options
        self.running = True
        self.starts += 1
        self._new_session()

    def stop(self) -> None:
        self.stops += 1
        self._finish_session()

    def abort(self) -> None:
        self.aborts += 1
        self._finish_session()

    def _finish_session(self) -> None:
        """End event arrives on a later loop iteration, like a real engine."""
        if not self.running:
            return
        self.running = False
        self.loop.call_soon(self._deliver, self.session, self._emit_end)

    def hear(self, *transcripts: str, is_final: bool = False) -> None:
        results = [RecognitionAlternative(transcript=t, is_final=is_final) for t in transcripts]
        self._emit_result(RecognitionEvent(results=results))

    def fail(self, code: EngineErrorCode, message: str = "") -> None:
        self.running = False
        self._emit_error(code, message)

    def end(self) -> None:
        self.running = False
        self._emit_end()


class FakeTranscriber(AbstractTranscriptionBackend):
    """Transcription backend with a controllable response."""

    def __init__(self, text: str = "帮我查天气"):
        super().__init__("test-model")
        self.text = text
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Future] = None
        self.calls = []

    async def transcribe(self, payload) -> str:
        self.calls.append(payload)
        if self.gate is not None:
            await self.gate
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def test_config():
    """Configuration with short timings so tests run fast."""
    return VoiceGateConfig.from_dict({
        "silence": {
            "threshold": 20.0,
            "timeout_seconds": 0.05,
            "tick_seconds": 0.005,
        },
        "wake_word": {
            "restart_delay_seconds": 0.01,
        },
    })


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def fake_microphone():
    return FakeMicrophone()


@pytest.fixture
def fake_transcriber():
    return FakeTranscriber()


@pytest.fixture
def fake_classes():
    """Fake collaborator classes, for tests that need more than one of each."""
    return SimpleNamespace(engine=FakeEngine, microphone=FakeMicrophone, transcriber=FakeTranscriber)


@pytest.fixture
def topic_root():
    """Unique pubsub topic root so orchestrators in different tests never share topics."""
    return f"voicegate_test_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def make_orchestrator(test_config, fake_engine, fake_microphone, fake_transcriber, topic_root):
    """Factory building an orchestrator on the running loop; call it inside the test."""
    created = []

    def factory(**overrides) -> VoiceCaptureOrchestrator:
        orchestrator = VoiceCaptureOrchestrator(
            overrides.get("config", test_config),
            engine=overrides.get("engine", fake_engine),
            microphone=overrides.get("microphone", fake_microphone),
            transcriber=overrides.get("transcriber", fake_transcriber),
            publisher=overrides.get("publisher", StatusPublisher(topic_root)),
        )
        created.append(orchestrator)
        return orchestrator

    yield factory

    for orchestrator in created:
        if orchestrator.disposed:
            continue
        try:
            orchestrator.dispose()
        except RuntimeError as e:
            # Test loop already closed
            logger.debug(f"Late dispose failed: {e}")


@pytest.fixture
def wait_until():
    """Poll ``predicate`` on the event loop until it holds or ``timeout`` elapses."""
    async def _wait(predicate, timeout: float = 1.0, interval: float = 0.002) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if predicate():
                return True
            await asyncio.sleep(interval)
        return predicate()

    return _wait


@pytest.fixture
def audio_test_data():
    """Generate 16-bit PCM test frames."""
    def generate_audio(pattern="noise", samples=1024, amplitude=0.5, sample_rate=16000):
        if pattern == "sine":
            t = np.arange(samples) / sample_rate
            wave_data = amplitude * np.sin(2 * np.pi * 440 * t)
        elif pattern == "noise":
            rng = np.random.default_rng(1234)
            wave_data = rng.uniform(-amplitude, amplitude, samples)
        elif pattern == "silence":
            wave_data = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")

        return (wave_data * 32767).astype(np.int16).tobytes()

    return generate_audio
