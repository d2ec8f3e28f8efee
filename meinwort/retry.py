"""
Transcription with pre-flight checks and escalating retries.

The remote Whisper call is slow and flaky, and it happily returns empty
text for quiet speech. Each retry raises the sampling temperature (more
sensitive decoding) and the last one also swaps in a prompt that admits
poor audio quality. Recordings that are obviously too short, silent,
empty or oversized never reach the endpoint.
"""

from dataclasses import dataclass, replace
from typing import Optional

from .audio import silence_ratio
from .clock import Clock, SYSTEM_CLOCK
from .errors import EmptyTranscriptionError, EndpointError, ErrorKind
from .metrics import MetricsWriter, log_transcription_attempt
from .providers import TranscriptionProvider
from .types import AudioPayload, ConfigSnapshot, TranscriptionOptions, TranscriptionResult


DEGRADED_AUDIO_PROMPT = (
    "Dies ist deutsche Sprache mit möglicherweise schlechter Audioqualität. "
    "Nutze maximale Empfindlichkeit und aggressive Erkennung."
)

# Placeholders shown instead of a transcription when the API is skipped
TOO_SHORT_TEXT = "[Aufnahme zu kurz - bitte sprechen Sie länger]"
SILENCE_TEXT = "[Nur Stille erkannt - bitte lauter sprechen]"
NO_AUDIO_TEXT = "[Keine Audiodaten aufgenommen]"
TOO_LARGE_TEXT = "[Aufnahme zu groß - bitte kürzer aufnehmen]"


@dataclass(frozen=True)
class RetryPolicy:
    """How hard to try before giving up on a transcription."""
    max_attempts: int = 3
    backoff_seconds: float = 0.5        # Linear: backoff_seconds * attempt
    temperature_step: float = 0.3
    max_temperature: float = 1.0
    degraded_prompt: str = DEGRADED_AUDIO_PROMPT

    @classmethod
    def from_snapshot(cls, config: ConfigSnapshot) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            backoff_seconds=config.backoff_seconds,
            temperature_step=config.temperature_step,
            max_temperature=config.max_temperature,
        )

    def backoff_for(self, attempt: int) -> float:
        """Delay after a failed attempt (1-based)."""
        return self.backoff_seconds * attempt

    def options_for_attempt(
        self,
        base: TranscriptionOptions,
        attempt: int,
        max_attempts: int,
    ) -> TranscriptionOptions:
        """Escalate sensitivity for attempt (1-based); attempt 1 is base verbatim."""
        if attempt <= 1:
            return base
        if attempt >= max_attempts:
            return replace(base, temperature=self.max_temperature, prompt=self.degraded_prompt)
        temperature = base.temperature + self.temperature_step * (attempt - 1)
        return replace(base, temperature=min(self.max_temperature, temperature))


@dataclass(frozen=True)
class SilencePolicy:
    """Pre-flight thresholds. Empirical values; not tuned for every microphone."""
    min_duration_ms: float = 300
    frame_ms: float = 100
    rms_threshold: float = 0.01
    max_silent_ratio: float = 0.8
    max_upload_bytes: int = 25 * 1024 * 1024

    @classmethod
    def from_snapshot(cls, config: ConfigSnapshot) -> "SilencePolicy":
        return cls(
            min_duration_ms=config.min_duration_ms,
            frame_ms=config.frame_ms,
            rms_threshold=config.rms_threshold,
            max_silent_ratio=config.max_silent_ratio,
            max_upload_bytes=config.max_upload_bytes,
        )


def _placeholder(text: str, payload: AudioPayload) -> TranscriptionResult:
    return TranscriptionResult(
        text=text,
        confidence=0.0,
        duration_ms=payload.duration_ms,
        is_placeholder=True,
    )


class TranscriptionRetryEngine:
    """
    Wraps a TranscriptionProvider with pre-flight checks and retries.

    Usage:
        engine = TranscriptionRetryEngine(GroqTranscriber(key))
        result = await engine.transcribe(payload, options)
        if result.is_placeholder:
            ...show result.text as guidance...
    """

    def __init__(
        self,
        provider: TranscriptionProvider,
        policy: Optional[RetryPolicy] = None,
        silence: Optional[SilencePolicy] = None,
        clock: Optional[Clock] = None,
        metrics: Optional[MetricsWriter] = None,
    ):
        self.provider = provider
        self.policy = policy or RetryPolicy()
        self.silence = silence or SilencePolicy()
        self.clock = clock or SYSTEM_CLOCK
        self.metrics = metrics

    def preflight(self, payload: AudioPayload) -> Optional[TranscriptionResult]:
        """Return a placeholder if the payload isn't worth sending, else None."""
        if not payload.data:
            print("[Whisper] Empty recording, skipping API")
            return _placeholder(NO_AUDIO_TEXT, payload)

        if len(payload.data) > self.silence.max_upload_bytes:
            size_mb = len(payload.data) / 1024 / 1024
            print(f"[Whisper] Recording too large ({size_mb:.1f}MB), skipping API")
            return _placeholder(TOO_LARGE_TEXT, payload)

        if payload.duration_ms < self.silence.min_duration_ms:
            print(f"[Whisper] Recording too short ({payload.duration_ms:.0f}ms), skipping API")
            return _placeholder(TOO_SHORT_TEXT, payload)

        ratio = silence_ratio(payload, self.silence.frame_ms, self.silence.rms_threshold)
        if ratio > self.silence.max_silent_ratio:
            print(f"[Whisper] {ratio * 100:.0f}% silent frames, skipping API")
            return _placeholder(SILENCE_TEXT, payload)

        return None

    async def transcribe(self, payload: AudioPayload, options: TranscriptionOptions) -> TranscriptionResult:
        """Pre-flight, then transcribe with retries."""
        placeholder = self.preflight(payload)
        if placeholder is not None:
            return placeholder
        return await self.transcribe_with_retry(payload, options)

    async def transcribe_with_retry(
        self,
        payload: AudioPayload,
        base_options: TranscriptionOptions,
        max_attempts: Optional[int] = None,
    ) -> TranscriptionResult:
        """
        Call the provider until it returns non-blank text.

        Raises:
            EndpointError: the last failure, once all attempts are used up
        """
        max_attempts = max(1, max_attempts or self.policy.max_attempts)
        last_error: EndpointError = EndpointError(ErrorKind.UNKNOWN, "No transcription attempt made")

        for attempt in range(1, max_attempts + 1):
            options = self.policy.options_for_attempt(base_options, attempt, max_attempts)
            print(f"[Whisper] Attempt {attempt}/{max_attempts} (temperature {options.temperature:.1f})")

            try:
                result = await self.provider.transcribe(payload, options)
                if result is None or not result.text or not result.text.strip():
                    raise EmptyTranscriptionError()

                if attempt > 1:
                    print(f"[Whisper] Succeeded after {attempt} attempts")
                self._log_attempt(attempt, options, ok=True)
                return result

            except EndpointError as e:
                last_error = e
                print(f"[Whisper] Attempt {attempt} failed ({e.kind.value}): {e}")
                self._log_attempt(attempt, options, ok=False, error=e)

            if attempt < max_attempts:
                await self.clock.sleep(self.policy.backoff_for(attempt))

        print(f"[Whisper] All {max_attempts} attempts failed")
        raise last_error

    def _log_attempt(
        self,
        attempt: int,
        options: TranscriptionOptions,
        ok: bool,
        error: Optional[EndpointError] = None,
    ) -> None:
        if self.metrics:
            log_transcription_attempt(
                self.metrics,
                provider=self.provider.name,
                attempt=attempt,
                temperature=options.temperature,
                ok=ok,
                error_kind=error.kind.value if error else None,
            )
