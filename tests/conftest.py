"""
Shared fakes for the engine tests.

Nothing here touches the microphone, the network or macOS APIs. Tests
import these classes directly (from conftest import ...).
"""

import asyncio
from typing import List, Optional

import numpy as np

from meinwort.audio import encode_wav, WAV_MIME_TYPE
from meinwort.errors import CaptureError
from meinwort.providers import RewriteProvider, TranscriptionProvider
from meinwort.types import AudioPayload, TranscriptionOptions, TranscriptionResult


class FakeClock:
    """Manually advanced clock. sleep() advances time instead of waiting."""

    def __init__(self, start: float = 1000.0):
        self.t = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds
        await asyncio.sleep(0)


class FakeClipboard:
    """
    In-memory clipboard.

    trigger_copy() copies `selection` (if any) onto the clipboard, like
    Cmd+C with that text selected in the frontmost app.
    """

    def __init__(self, content: str = "", selection: Optional[str] = None):
        self.content = content
        self.selection = selection
        self.copy_ok = True
        self.write_ok = True
        self.read_error: Optional[Exception] = None
        self.clear_ok = True
        self.writes: List[str] = []
        self.copies = 0
        self.clears = 0

    async def read(self) -> str:
        if self.read_error is not None:
            raise self.read_error
        return self.content

    async def write(self, text: str) -> bool:
        if not self.write_ok:
            return False
        self.writes.append(text)
        self.content = text
        return True

    async def trigger_copy(self) -> bool:
        self.copies += 1
        if not self.copy_ok:
            return False
        if self.selection is not None:
            self.content = self.selection
        return True

    async def clear_other_selections(self) -> bool:
        self.clears += 1
        return self.clear_ok


class FakeCapture:
    """
    Capture device returning a fixed payload.

    Set permission_gate / start_gate to an asyncio.Event (created inside
    the running loop) to hold request_permission() / start() open.
    """

    def __init__(self, payload: Optional[AudioPayload] = None, permitted: bool = True):
        self.payload = payload if payload is not None else make_wav(1.0)
        self.permitted = permitted
        self.start_error: Optional[Exception] = None
        self.stop_error: Optional[Exception] = None
        self.permission_gate: Optional[asyncio.Event] = None
        self.start_gate: Optional[asyncio.Event] = None
        self.capturing = False
        self.generation = 0
        self.starts = 0
        self.stops = 0
        self.releases = 0

    @property
    def is_capturing(self) -> bool:
        return self.capturing

    async def request_permission(self) -> bool:
        if self.permission_gate is not None:
            await self.permission_gate.wait()
        return self.permitted

    async def start(self) -> int:
        self.starts += 1
        if self.start_gate is not None:
            await self.start_gate.wait()
        if self.start_error is not None:
            raise self.start_error
        self.capturing = True
        self.generation += 1
        return self.generation

    async def stop(self) -> AudioPayload:
        if not self.capturing:
            raise CaptureError("No recording in progress")
        self.stops += 1
        self.capturing = False
        if self.stop_error is not None:
            raise self.stop_error
        return self.payload

    async def release(self, generation: int) -> bool:
        if not self.capturing or generation != self.generation:
            return False
        self.releases += 1
        self.capturing = False
        return True


class StubTranscriber(TranscriptionProvider):
    """
    Returns queued outcomes in order: a string becomes a result, None an
    empty response, an exception is raised. The last outcome repeats.
    """

    name = "stub"

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes) or ["hallo welt"]
        self.calls: List[TranscriptionOptions] = []

    async def transcribe(self, payload: AudioPayload, options: TranscriptionOptions) -> TranscriptionResult:
        self.calls.append(options)
        index = min(len(self.calls) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return None
        return TranscriptionResult(text=outcome, language="de", duration_ms=payload.duration_ms)


class StubRewriter(RewriteProvider):
    """Rewrite provider returning a fixed result or raising a fixed error."""

    def __init__(self, result: str = "umgeschrieben", error: Optional[Exception] = None,
                 name: str = "stub", priority: int = 1, available: bool = True):
        self.name = name
        self.model = "stub-model"
        self.priority = priority
        self.result = result
        self.error = error
        self.available = available
        self.calls = []

    def is_available(self) -> bool:
        return self.available

    async def rewrite(self, instruction: str, source_text: str) -> str:
        self.calls.append((instruction, source_text))
        if self.error is not None:
            raise self.error
        return self.result


def make_wav(duration_s: float, amplitude: float = 0.3, sample_rate: int = 16000) -> AudioPayload:
    """A sine tone (or silence with amplitude=0) as a WAV payload."""
    t = np.arange(int(duration_s * sample_rate)) / sample_rate
    audio = (amplitude * np.sin(2 * np.pi * 440 * t)).astype(np.float32)
    data = encode_wav(audio, sample_rate) if len(audio) else b""
    return AudioPayload(data=data, mime_type=WAV_MIME_TYPE, duration_ms=duration_s * 1000)
