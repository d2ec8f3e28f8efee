"""
Tests for meinwort providers.

SDK clients and HTTP sessions are mocked; no network access.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest

from conftest import make_wav


class TestErrorMapping:
    """Tests for classifying endpoint failures."""

    @pytest.mark.parametrize("status,kind", [
        (400, "bad_input"),
        (413, "bad_input"),
        (429, "rate_limited"),
        (500, "server_error"),
        (503, "server_error"),
        (404, "unknown"),
    ])
    def test_from_status(self, status, kind):
        from meinwort.errors import EndpointError

        error = EndpointError.from_status(status)
        assert error.kind.value == kind
        assert error.status_code == status

    def test_groq_status_error(self):
        import groq
        from meinwort.errors import ErrorKind
        from meinwort.providers.groq import _to_endpoint_error

        sdk_error = Mock(spec=groq.RateLimitError)
        sdk_error.status_code = 429

        assert _to_endpoint_error(sdk_error).kind is ErrorKind.RATE_LIMITED

    def test_groq_connection_error(self):
        import groq
        from meinwort.errors import ErrorKind
        from meinwort.providers.groq import _to_endpoint_error

        assert _to_endpoint_error(Mock(spec=groq.APIConnectionError)).kind is ErrorKind.NETWORK_ERROR

    def test_describe_error(self):
        from meinwort.errors import EndpointError, ErrorKind, describe_error

        assert describe_error(EndpointError(ErrorKind.NETWORK_ERROR)) == "Keine Internetverbindung verfügbar"
        assert describe_error(ValueError("kaputt")) == "kaputt"
        assert describe_error(ValueError()) == "ValueError"


class TestConfidence:
    """Tests for confidence_from_segments."""

    def test_no_segments(self):
        from meinwort.providers.groq import confidence_from_segments
        assert confidence_from_segments(None) is None
        assert confidence_from_segments([]) is None

    def test_mean_logprob(self):
        import math
        from meinwort.providers.groq import confidence_from_segments

        segments = [{"avg_logprob": -0.2}, SimpleNamespace(avg_logprob=-0.4)]
        assert confidence_from_segments(segments) == pytest.approx(math.exp(-0.3))


class TestGroqTranscriber:
    """Tests for GroqTranscriber."""

    def make_client(self, response=None, error=None):
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(return_value=response, side_effect=error)
        return client

    def test_transcription(self):
        from meinwort.providers.groq import GroqTranscriber
        from meinwort.types import TranscriptionOptions

        response = SimpleNamespace(text=" Hallo Welt ", language="german", segments=[{"avg_logprob": 0.0}])
        client = self.make_client(response)
        provider = GroqTranscriber("gsk_test", client=client)
        payload = make_wav(1)

        result = asyncio.run(provider.transcribe(payload, TranscriptionOptions("de", 0.2, "Befehl")))

        assert result.text == "Hallo Welt"
        assert result.language == "german"
        assert result.confidence == 1.0
        kwargs = client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["file"] == ("recording.wav", payload.data)
        assert kwargs["language"] == "de"
        assert kwargs["temperature"] == 0.2
        assert kwargs["prompt"] == "Befehl"
        assert kwargs["response_format"] == "verbose_json"

    def test_empty_prompt_not_sent(self):
        from meinwort.providers.groq import GroqTranscriber
        from meinwort.types import TranscriptionOptions

        client = self.make_client(SimpleNamespace(text="x"))
        asyncio.run(GroqTranscriber("k", client=client).transcribe(make_wav(1), TranscriptionOptions()))

        assert client.audio.transcriptions.create.call_args.kwargs["prompt"] is None

    def test_failure_becomes_endpoint_error(self):
        from meinwort.errors import EndpointError, ErrorKind
        from meinwort.providers.groq import GroqTranscriber
        from meinwort.types import TranscriptionOptions

        client = self.make_client(error=RuntimeError("boom"))

        with pytest.raises(EndpointError) as exc_info:
            asyncio.run(GroqTranscriber("k", client=client).transcribe(make_wav(1), TranscriptionOptions()))
        assert exc_info.value.kind is ErrorKind.UNKNOWN


class TestGroqRewriter:
    """Tests for GroqRewriter."""

    def make_client(self, content):
        completion = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=completion)
        return client

    def test_rewrite(self):
        from meinwort.providers import DEFAULT_EDITING_PROMPT
        from meinwort.providers.groq import GroqRewriter

        client = self.make_client(" Kurz. ")
        text = asyncio.run(GroqRewriter("k", client=client).rewrite("zusammenfassen", "Lang."))

        assert text == "Kurz."
        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0]["content"] == DEFAULT_EDITING_PROMPT
        assert "ANWEISUNG: zusammenfassen" in messages[1]["content"]
        assert "ORIGINAL-TEXT:\nLang." in messages[1]["content"]

    def test_empty_response_raises(self):
        from meinwort.errors import EndpointError
        from meinwort.providers.groq import GroqRewriter

        with pytest.raises(EndpointError):
            asyncio.run(GroqRewriter("k", client=self.make_client("")).rewrite("x", "y"))

    def test_availability(self):
        from meinwort.providers.groq import GroqRewriter

        assert GroqRewriter("k").is_available()
        assert not GroqRewriter("").is_available()


class TestGeminiRewriter:
    """Tests for GeminiRewriter."""

    def make_session(self, status=200, body=None, error=None):
        session = Mock()
        if error is not None:
            session.post.side_effect = error
        else:
            response = Mock(status_code=status)
            response.json.return_value = body or {}
            session.post.return_value = response
        return session

    def test_rewrite(self):
        from meinwort.providers.gemini import GeminiRewriter

        body = {"candidates": [{"content": {"parts": [{"text": "Formell.\n"}]}}]}
        session = self.make_session(body=body)

        text = asyncio.run(GeminiRewriter("key", session=session).rewrite("formeller machen", "hey"))

        assert text == "Formell."
        kwargs = session.post.call_args.kwargs
        assert kwargs["params"] == {"key": "key"}
        assert "ANWEISUNG: formeller machen" in kwargs["json"]["contents"][0]["parts"][0]["text"]

    def test_http_error_classified(self):
        from meinwort.errors import EndpointError, ErrorKind
        from meinwort.providers.gemini import GeminiRewriter

        with pytest.raises(EndpointError) as exc_info:
            asyncio.run(GeminiRewriter("key", session=self.make_session(status=429)).rewrite("x", "y"))
        assert exc_info.value.kind is ErrorKind.RATE_LIMITED

    def test_connection_error_classified(self):
        import requests
        from meinwort.errors import EndpointError, ErrorKind
        from meinwort.providers.gemini import GeminiRewriter

        session = self.make_session(error=requests.ConnectionError("offline"))
        with pytest.raises(EndpointError) as exc_info:
            asyncio.run(GeminiRewriter("key", session=session).rewrite("x", "y"))
        assert exc_info.value.kind is ErrorKind.NETWORK_ERROR

    def test_malformed_body(self):
        from meinwort.errors import EndpointError
        from meinwort.providers.gemini import GeminiRewriter

        with pytest.raises(EndpointError):
            asyncio.run(GeminiRewriter("key", session=self.make_session(body={"candidates": []})).rewrite("x", "y"))

    def test_null_parts(self):
        from meinwort.errors import EndpointError
        from meinwort.providers.gemini import GeminiRewriter

        body = {"candidates": [{"content": {"parts": None}}]}
        with pytest.raises(EndpointError):
            asyncio.run(GeminiRewriter("key", session=self.make_session(body=body)).rewrite("x", "y"))
