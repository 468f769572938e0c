"""Wire the orchestrator to its production collaborators."""

import asyncio
import logging
from typing import Optional

from ..audio.capture import PyAudioMicrophone
from ..config import VoiceGateConfig
from ..transcription.client import TranscriptionClient
from .orchestrator import VoiceCaptureOrchestrator
from .publisher import StatusPublisher

logger = logging.getLogger(__name__)


def build_orchestrator(config: VoiceGateConfig,
                       loop: Optional[asyncio.AbstractEventLoop] = None) -> VoiceCaptureOrchestrator:
    """Build an orchestrator using PyAudio, Google streaming recognition and the HTTP endpoint."""
    from ..recognition.google_engine import GoogleStreamingEngine

    loop = loop or asyncio.get_running_loop()

    sample_rate = config.get('audio.sample_rate', 16000)
    frame_size = config.get('audio.frame_size', 1024)
    channels = config.get('audio.channels', 1)
    device_index = config.get('audio.device_index')

    logger.info(f"Audio settings: {sample_rate}Hz, {frame_size} samples/frame, {channels} channels")

    microphone = PyAudioMicrophone(
        sample_rate=sample_rate,
        chunk_size=frame_size,
        channels=channels,
        device_index=device_index,
    )
    engine = GoogleStreamingEngine(
        loop,
        credentials_path=config.get_google_credentials_path(),
        sample_rate=sample_rate,
        chunk_size=frame_size,
        device_index=device_index,
    )
    transcriber = TranscriptionClient(
        api_key=config.get_api_key(),
        model=config.get('transcription.model', 'FunAudioLLM/SenseVoiceSmall'),
        base_url=config.get('transcription.base_url', 'https://api.siliconflow.cn/v1'),
        path=config.get('transcription.path', '/audio/transcriptions'),
        timeout_seconds=float(config.get('transcription.timeout_seconds', 30.0)),
    )
    publisher = StatusPublisher(config.get('pubsub.topic_root', 'voicegate'))

    return VoiceCaptureOrchestrator(
        config,
        engine=engine,
        microphone=microphone,
        transcriber=transcriber,
        publisher=publisher,
        loop=loop,
    )
