"""
Tests for meinwort transcription retries and pre-flight checks.
"""

import asyncio

import pytest

from conftest import FakeClock, StubTranscriber, make_wav


def make_engine(provider, **kwargs):
    from meinwort.retry import TranscriptionRetryEngine

    clock = FakeClock()
    return TranscriptionRetryEngine(provider, clock=clock, **kwargs), clock


class TestRetryPolicy:
    """Tests for temperature escalation."""

    def test_first_attempt_uses_base_options(self):
        from meinwort.retry import RetryPolicy
        from meinwort.types import TranscriptionOptions

        base = TranscriptionOptions(language="de", temperature=0.2, prompt="Befehl")
        assert RetryPolicy().options_for_attempt(base, 1, 3) is base

    def test_middle_attempt_raises_temperature(self):
        from meinwort.retry import RetryPolicy
        from meinwort.types import TranscriptionOptions

        base = TranscriptionOptions(temperature=0.2, prompt="Befehl")
        options = RetryPolicy().options_for_attempt(base, 2, 3)

        assert options.temperature == pytest.approx(0.5)
        assert options.prompt == "Befehl"

    def test_middle_attempt_is_capped(self):
        from meinwort.retry import RetryPolicy
        from meinwort.types import TranscriptionOptions

        base = TranscriptionOptions(temperature=0.9)
        options = RetryPolicy().options_for_attempt(base, 2, 5)

        assert options.temperature == 1.0

    def test_last_attempt_uses_degraded_prompt(self):
        from meinwort.retry import DEGRADED_AUDIO_PROMPT, RetryPolicy
        from meinwort.types import TranscriptionOptions

        base = TranscriptionOptions(temperature=0.2, prompt="Befehl")
        options = RetryPolicy().options_for_attempt(base, 3, 3)

        assert options.temperature == 1.0
        assert options.prompt == DEGRADED_AUDIO_PROMPT
        assert options.language == base.language

    def test_single_attempt_is_base(self):
        from meinwort.retry import RetryPolicy
        from meinwort.types import TranscriptionOptions

        base = TranscriptionOptions(temperature=0.2)
        assert RetryPolicy().options_for_attempt(base, 1, 1) is base

    def test_linear_backoff(self):
        from meinwort.retry import RetryPolicy

        policy = RetryPolicy(backoff_seconds=0.5)
        assert [policy.backoff_for(a) for a in (1, 2, 3)] == [0.5, 1.0, 1.5]

    def test_from_snapshot(self):
        from meinwort.config import default_snapshot
        from meinwort.retry import RetryPolicy

        policy = RetryPolicy.from_snapshot(default_snapshot(max_attempts=5, backoff_seconds=0.1))
        assert policy.max_attempts == 5
        assert policy.backoff_seconds == 0.1


class TestTranscribeWithRetry:
    """Tests for the retry loop."""

    def test_success_first_try(self):
        from meinwort.types import TranscriptionOptions

        provider = StubTranscriber("hallo")
        engine, clock = make_engine(provider)

        result = asyncio.run(engine.transcribe_with_retry(make_wav(1), TranscriptionOptions()))

        assert result.text == "hallo"
        assert len(provider.calls) == 1
        assert clock.sleeps == []

    def test_escalates_over_three_failures(self):
        """Test attempts 1..3 escalate and the last error is raised."""
        from meinwort.errors import EndpointError, ErrorKind
        from meinwort.retry import DEGRADED_AUDIO_PROMPT
        from meinwort.types import TranscriptionOptions

        provider = StubTranscriber(
            EndpointError(ErrorKind.SERVER_ERROR, "500"),
            EndpointError(ErrorKind.RATE_LIMITED, "429"),
            EndpointError(ErrorKind.NETWORK_ERROR, "offline"),
        )
        engine, clock = make_engine(provider)
        base = TranscriptionOptions(temperature=0.2, prompt="Befehl")

        with pytest.raises(EndpointError) as exc_info:
            asyncio.run(engine.transcribe_with_retry(make_wav(1), base, max_attempts=3))

        assert exc_info.value.kind is ErrorKind.NETWORK_ERROR
        temps = [o.temperature for o in provider.calls]
        assert temps == pytest.approx([0.2, 0.5, 1.0])
        assert provider.calls[0].prompt == "Befehl"
        assert provider.calls[2].prompt == DEGRADED_AUDIO_PROMPT
        assert clock.sleeps == [0.5, 1.0]

    def test_empty_text_is_retried(self):
        """Test blank and missing results count as failures."""
        from meinwort.types import TranscriptionOptions

        provider = StubTranscriber("   ", None, "endlich")
        engine, _ = make_engine(provider)

        result = asyncio.run(engine.transcribe_with_retry(make_wav(1), TranscriptionOptions()))

        assert result.text == "endlich"
        assert len(provider.calls) == 3

    def test_empty_text_exhaustion_raises_empty_error(self):
        from meinwort.errors import EmptyTranscriptionError
        from meinwort.types import TranscriptionOptions

        provider = StubTranscriber("")
        engine, _ = make_engine(provider)

        with pytest.raises(EmptyTranscriptionError):
            asyncio.run(engine.transcribe_with_retry(make_wav(1), TranscriptionOptions(), max_attempts=2))

    def test_logs_attempts(self):
        from unittest.mock import Mock
        from meinwort.errors import EndpointError, ErrorKind
        from meinwort.types import TranscriptionOptions

        metrics = Mock()
        provider = StubTranscriber(EndpointError(ErrorKind.SERVER_ERROR), "ok")
        engine, _ = make_engine(provider, metrics=metrics)

        asyncio.run(engine.transcribe_with_retry(make_wav(1), TranscriptionOptions()))

        events = [c.args[0] for c in metrics.log.call_args_list]
        assert events == ["transcription_attempt", "transcription_attempt"]
        assert metrics.log.call_args_list[0].kwargs["error_kind"] == "server_error"
        assert metrics.log.call_args_list[1].kwargs["ok"] is True


class TestPreflight:
    """Tests for placeholder short-circuits."""

    def test_too_short_skips_endpoint(self):
        """Test a 200ms recording never reaches the endpoint."""
        from meinwort.retry import TOO_SHORT_TEXT
        from meinwort.types import TranscriptionOptions

        provider = StubTranscriber("nie")
        engine, _ = make_engine(provider)

        result = asyncio.run(engine.transcribe(make_wav(0.2), TranscriptionOptions()))

        assert result.is_placeholder
        assert result.text == TOO_SHORT_TEXT
        assert provider.calls == []

    def test_empty_payload(self):
        from meinwort.retry import NO_AUDIO_TEXT
        from meinwort.types import AudioPayload, TranscriptionOptions

        provider = StubTranscriber()
        engine, _ = make_engine(provider)

        result = asyncio.run(engine.transcribe(AudioPayload(b"", "audio/wav", 0), TranscriptionOptions()))

        assert result.text == NO_AUDIO_TEXT
        assert provider.calls == []

    def test_too_large(self):
        from meinwort.retry import SilencePolicy, TOO_LARGE_TEXT
        from meinwort.types import TranscriptionOptions

        provider = StubTranscriber()
        engine, _ = make_engine(provider, silence=SilencePolicy(max_upload_bytes=1000))

        result = asyncio.run(engine.transcribe(make_wav(1), TranscriptionOptions()))

        assert result.text == TOO_LARGE_TEXT
        assert provider.calls == []

    def test_silence(self):
        from meinwort.retry import SILENCE_TEXT
        from meinwort.types import TranscriptionOptions

        provider = StubTranscriber()
        engine, _ = make_engine(provider)

        result = asyncio.run(engine.transcribe(make_wav(1, amplitude=0.0), TranscriptionOptions()))

        assert result.text == SILENCE_TEXT
        assert provider.calls == []

    def test_speech_passes(self):
        from meinwort.types import TranscriptionOptions

        provider = StubTranscriber("gesprochen")
        engine, _ = make_engine(provider)

        result = asyncio.run(engine.transcribe(make_wav(1), TranscriptionOptions()))

        assert not result.is_placeholder
        assert result.text == "gesprochen"
