"""
Groq providers: Whisper transcription and chat-based rewriting.
"""

import math
import time
from typing import Optional

from . import (
    TranscriptionProvider, RewriteProvider, DEFAULT_EDITING_PROMPT, build_rewrite_prompt,
)
from ..errors import EndpointError, ErrorKind
from ..types import AudioPayload, TranscriptionOptions, TranscriptionResult


GROQ_WHISPER_MODEL = "whisper-large-v3"
GROQ_CHAT_MODEL = "openai/gpt-oss-120b"


def _to_endpoint_error(error: Exception) -> EndpointError:
    """Map Groq SDK exceptions onto our error classification."""
    import groq

    if isinstance(error, groq.APIStatusError):
        return EndpointError.from_status(error.status_code, str(error))
    if isinstance(error, (groq.APIConnectionError, groq.APITimeoutError)):
        return EndpointError(ErrorKind.NETWORK_ERROR, str(error))
    return EndpointError(ErrorKind.UNKNOWN, str(error))


def _segment_value(segment, key: str):
    if isinstance(segment, dict):
        return segment.get(key)
    return getattr(segment, key, None)


def confidence_from_segments(segments) -> Optional[float]:
    """Approximate confidence as exp(mean avg_logprob), clamped to [0, 1]."""
    if not segments:
        return None
    logprobs = [_segment_value(s, "avg_logprob") or 0.0 for s in segments]
    mean = sum(logprobs) / len(logprobs)
    return max(0.0, min(1.0, math.exp(mean)))


class GroqTranscriber(TranscriptionProvider):
    """
    Cloud transcription using Groq's Whisper API.

    Fast cloud-based transcription with low latency.
    """

    name = "groq"

    def __init__(self, api_key: str, model: str = GROQ_WHISPER_MODEL, client=None):
        self.api_key = api_key
        self.model = model
        self._client = client

    @property
    def client(self):
        """Lazily create the async client."""
        if self._client is None:
            from groq import AsyncGroq

            self._client = AsyncGroq(api_key=self.api_key)
        return self._client

    async def transcribe(self, payload: AudioPayload, options: TranscriptionOptions) -> TranscriptionResult:
        start = time.perf_counter()
        try:
            response = await self.client.audio.transcriptions.create(
                file=("recording.wav", payload.data),
                model=self.model,
                language=options.language,
                temperature=options.temperature,
                prompt=options.prompt or None,
                response_format="verbose_json",
            )
        except Exception as e:
            raise _to_endpoint_error(e) from e

        latency_ms = int((time.perf_counter() - start) * 1000)
        text = (getattr(response, "text", None) or "").strip()
        print(f"[{self.name}] Whisper -> {latency_ms / 1000:.2f}s, {len(text)} chars")

        return TranscriptionResult(
            text=text,
            language=getattr(response, "language", None),
            confidence=confidence_from_segments(getattr(response, "segments", None)),
            duration_ms=payload.duration_ms,
        )


class GroqRewriter(RewriteProvider):
    """Applies editing instructions with a Groq-hosted chat model."""

    name = "groq"
    priority = 1

    def __init__(self, api_key: str, model: str = GROQ_CHAT_MODEL, system_prompt: str = "", client=None):
        self.api_key = api_key
        self.model = model
        self.system_prompt = system_prompt or DEFAULT_EDITING_PROMPT
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from groq import AsyncGroq

            self._client = AsyncGroq(api_key=self.api_key)
        return self._client

    def is_available(self) -> bool:
        return bool(self.api_key) or self._client is not None

    async def rewrite(self, instruction: str, source_text: str) -> str:
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": build_rewrite_prompt(instruction, source_text)},
                ],
                temperature=0.1,
                max_completion_tokens=1200,
            )
        except Exception as e:
            raise _to_endpoint_error(e) from e

        if not completion.choices:
            raise EndpointError(ErrorKind.UNKNOWN, "No choices in response")

        text = (completion.choices[0].message.content or "").strip()
        if not text:
            raise EndpointError(ErrorKind.UNKNOWN, "Empty response")
        return text
