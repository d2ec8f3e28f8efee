"""
Google Gemini rewrite provider (direct REST API).
"""

import asyncio

import requests

from . import RewriteProvider, DEFAULT_EDITING_PROMPT, build_rewrite_prompt
from ..errors import EndpointError, ErrorKind


GEMINI_MODEL = "gemini-2.5-flash"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class GeminiRewriter(RewriteProvider):
    """
    Applies editing instructions with Gemini.

    Uses a persistent requests.Session for connection reuse; the blocking
    call runs in a worker thread.
    """

    name = "gemini"
    priority = 2

    def __init__(
        self,
        api_key: str,
        model: str = GEMINI_MODEL,
        system_prompt: str = "",
        session: requests.Session = None,
        timeout: float = 15,
    ):
        self.api_key = api_key
        self.model = model
        self.system_prompt = system_prompt or DEFAULT_EDITING_PROMPT
        self.session = session or requests.Session()
        self.timeout = timeout

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def rewrite(self, instruction: str, source_text: str) -> str:
        return await asyncio.to_thread(self._rewrite_blocking, instruction, source_text)

    def _rewrite_blocking(self, instruction: str, source_text: str) -> str:
        data = {
            "contents": [
                {"role": "user", "parts": [{"text": build_rewrite_prompt(instruction, source_text)}]}
            ],
            "systemInstruction": {"parts": [{"text": self.system_prompt}]},
            "generationConfig": {
                "temperature": 0.1,
                "maxOutputTokens": 1200,
                "thinkingConfig": {"thinkingBudget": 0},
            },
        }

        try:
            response = self.session.post(
                GEMINI_URL.format(model=self.model),
                params={"key": self.api_key},
                json=data,
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise EndpointError(ErrorKind.NETWORK_ERROR, str(e)) from e
        except requests.RequestException as e:
            raise EndpointError(ErrorKind.UNKNOWN, str(e)) from e

        if response.status_code != 200:
            raise EndpointError.from_status(response.status_code, f"Gemini API error: {response.status_code}")

        try:
            result = response.json()
            text = result.get("candidates", [{}])[0].get("content", {}).get("parts", [{}])[0].get("text", "")
        except (ValueError, IndexError, AttributeError, TypeError) as e:
            raise EndpointError(ErrorKind.UNKNOWN, f"Unexpected Gemini response: {e}") from e

        text = (text or "").strip()
        if not text:
            raise EndpointError(ErrorKind.UNKNOWN, "Empty response")
        return text
