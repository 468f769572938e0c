"""Unit tests for GoogleStreamingEngine with the client and PyAudio mocked."""

import asyncio
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock, Mock, patch

import pytest
from google.api_core import exceptions as gax_exceptions

from voicegate.models.events import EngineErrorCode, RecognitionOptions
from voicegate.recognition.google_engine import GoogleStreamingEngine


def response(*alternatives):
    return SimpleNamespace(results=[
        SimpleNamespace(alternatives=[SimpleNamespace(transcript=text, confidence=0.9)],
                        is_final=final)
        for text, final in alternatives
    ])


class BlockingCall:
    """Streaming call that yields nothing until released or cancelled."""

    def __init__(self):
        self.released = threading.Event()
        self.cancelled = False

    def __iter__(self):
        self.released.wait(timeout=5.0)
        if self.cancelled:
            raise gax_exceptions.Cancelled("call cancelled")
        return iter([])

    def release(self):
        self.released.set()

    def cancel(self):
        self.cancelled = True
        self.released.set()


@pytest.fixture
def mock_pyaudio():
    module = MagicMock()
    with patch.dict("sys.modules", {"pyaudio": module}):
        yield module


@pytest.fixture
def blocking_client():
    client = Mock()
    client.calls = []

    def streaming_recognize(config, requests):
        call = BlockingCall()
        client.calls.append(call)
        return call

    client.streaming_recognize.side_effect = streaming_recognize
    return client


def attach_events(engine):
    events = {"results": [], "errors": [], "ends": 0}
    engine.on_result = events["results"].append
    engine.on_error = events["errors"].append

    def on_end():
        events["ends"] += 1

    engine.on_end = on_end
    return events


async def run_engine(client, options=None):
    """Run one streaming session synchronously and collect the delivered events."""
    engine = GoogleStreamingEngine(asyncio.get_running_loop())
    engine.client = client
    events = attach_events(engine)
    engine._run(options or RecognitionOptions(), threading.Event(), engine.session)
    await asyncio.sleep(0)
    return engine, events


@pytest.mark.unit
@pytest.mark.asyncio
class TestGoogleStreamingEngine:
    """Test cases for GoogleStreamingEngine."""

    async def test_results_delivered_on_loop(self, mock_pyaudio):
        """Test streaming responses are delivered as recognition events."""
        client = Mock()
        client.streaming_recognize.return_value = iter([
            response(("小瞳", False)),
            response(("小瞳小瞳", True)),
        ])

        engine, events = await run_engine(client)

        assert [e.latest.transcript for e in events["results"]] == ["小瞳", "小瞳小瞳"]
        assert events["results"][1].latest.is_final
        assert events["ends"] == 1
        mock_pyaudio.PyAudio.return_value.terminate.assert_called_once()

    async def test_streaming_config_follows_options(self, mock_pyaudio):
        """Test streaming config built from recognition options."""
        engine = GoogleStreamingEngine(asyncio.get_running_loop(), sample_rate=16000)

        config = engine._streaming_config(RecognitionOptions(language="en-US", interim_results=False))

        assert config.config.language_code == "en-US"
        assert config.config.sample_rate_hertz == 16000
        assert not config.interim_results
        assert not config.single_utterance

    @pytest.mark.parametrize("exception,code", [
        (gax_exceptions.ServiceUnavailable("down"), EngineErrorCode.NETWORK),
        (gax_exceptions.PermissionDenied("no"), EngineErrorCode.SERVICE_NOT_ALLOWED),
        (gax_exceptions.InternalServerError("oops"), EngineErrorCode.UNKNOWN),
        (OSError("no input device"), EngineErrorCode.AUDIO_CAPTURE),
    ])
    async def test_errors_are_coded_and_end_follows(self, mock_pyaudio, exception, code):
        """Test API and device errors map to engine error codes."""
        client = Mock()
        client.streaming_recognize.side_effect = exception

        engine, events = await run_engine(client)

        assert [e.code for e in events["errors"]] == [code]
        assert events["ends"] == 1

    async def test_service_time_limit_is_a_normal_end(self, mock_pyaudio):
        """Test stream closed by the service ends without an error."""
        client = Mock()
        client.streaming_recognize.side_effect = gax_exceptions.OutOfRange("stream too long")

        engine, events = await run_engine(client)

        assert events["errors"] == []
        assert events["ends"] == 1

    async def test_start_twice_while_running_fails(self, mock_pyaudio, blocking_client, wait_until):
        """Test starting again while the session is still running."""
        engine = GoogleStreamingEngine(asyncio.get_running_loop())
        engine.client = blocking_client
        engine.start(RecognitionOptions())
        assert await wait_until(lambda: len(blocking_client.calls) == 1)

        with pytest.raises(RuntimeError, match="already started"):
            engine.start(RecognitionOptions())

        engine.stop()
        blocking_client.calls[0].release()
        engine._thread.join(timeout=1.0)

    async def test_start_after_stop_while_previous_stream_drains(self, mock_pyaudio, blocking_client,
                                                                 wait_until):
        """Test start after stop does not wait for the old stream to close."""
        engine = GoogleStreamingEngine(asyncio.get_running_loop())
        engine.client = blocking_client
        events = attach_events(engine)

        engine.start(RecognitionOptions())
        assert await wait_until(lambda: len(blocking_client.calls) == 1)
        old_thread = engine._thread
        engine.stop()

        engine.start(RecognitionOptions())
        assert await wait_until(lambda: len(blocking_client.calls) == 2)

        # The detached stream finishes; its end event must not reach the handlers
        blocking_client.calls[0].release()
        old_thread.join(timeout=1.0)
        await asyncio.sleep(0.01)
        assert events["ends"] == 0
        assert engine._thread.is_alive()

        engine.stop()
        blocking_client.calls[1].release()
        engine._thread.join(timeout=1.0)
        assert await wait_until(lambda: events["ends"] == 1)

    async def test_abort_cancels_streaming_call(self, mock_pyaudio, blocking_client, wait_until):
        """Test abort cancels the gRPC call instead of waiting for it."""
        engine = GoogleStreamingEngine(asyncio.get_running_loop())
        engine.client = blocking_client
        events = attach_events(engine)
        engine.start(RecognitionOptions())
        assert await wait_until(lambda: engine._calls.get(engine.session) is not None)

        engine.abort()
        engine._thread.join(timeout=1.0)

        assert blocking_client.calls[0].cancelled
        assert not engine._thread.is_alive()
        assert await wait_until(lambda: events["ends"] == 1)
        assert events["errors"] == []

    async def test_unavailable_without_credentials(self):
        """Test is_available when credentials cannot be loaded."""
        engine = GoogleStreamingEngine(asyncio.get_running_loop())

        with patch.object(engine, "_get_client", side_effect=Exception("no credentials")):
            assert not engine.is_available()
