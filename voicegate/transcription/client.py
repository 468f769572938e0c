"""HTTP client for the remote audio transcription endpoint."""

import asyncio
import logging
from typing import Optional

import aiohttp

from ..errors import TranscriptionFailure
from ..models.audio import AudioPayload
from .base import AbstractTranscriptionBackend

logger = logging.getLogger(__name__)


class TranscriptionClient(AbstractTranscriptionBackend):
    """Posts audio as multipart form data (``file`` + ``model``) and reads ``{"text": ...}``."""

    def __init__(self,
                 api_key: Optional[str],
                 model: str = "FunAudioLLM/SenseVoiceSmall",
                 base_url: str = "https://api.siliconflow.cn/v1",
                 path: str = "/audio/transcriptions",
                 timeout_seconds: float = 30.0):
        """Initialize transcription client.

        Args:
            api_key: Bearer token for the endpoint
            model: Model identifier sent with every request
            base_url: API base URL
            path: Transcription endpoint path
            timeout_seconds: Total request timeout
        """
        super().__init__(model)
        self.api_key = api_key
        self.url = base_url.rstrip("/") + "/" + path.lstrip("/")
        self.timeout_seconds = timeout_seconds

        if not api_key:
            logger.warning("No transcription API key configured, requests will be unauthenticated")
        logger.info(f"TranscriptionClient initialized: {self.url} (model: {model})")

    def _form(self, payload: AudioPayload) -> aiohttp.FormData:
        form = aiohttp.FormData()
        form.add_field("file", payload.data, filename=payload.filename,
                       content_type=payload.mime_type)
        form.add_field("model", self.model)
        return form

    async def transcribe(self, payload: AudioPayload) -> str:
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, headers=headers, data=self._form(payload)) as response:
                    if response.status < 200 or response.status >= 300:
                        error_text = await response.text()
                        raise TranscriptionFailure(error_text.strip() or response.reason or "request failed",
                                                   status=response.status)
                    result = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise TranscriptionFailure(f"Network error: {e}") from e
        except asyncio.TimeoutError as e:
            raise TranscriptionFailure(f"Request timed out after {self.timeout_seconds}s") from e
        except ValueError as e:
            raise TranscriptionFailure(f"Invalid response body: {e}") from e

        if not isinstance(result, dict):
            raise TranscriptionFailure(f"Unexpected response: {result!r}")
        text = result.get("text") or ""
        if not isinstance(text, str):
            raise TranscriptionFailure(f"Unexpected 'text' field: {text!r}")
        return text.strip()
