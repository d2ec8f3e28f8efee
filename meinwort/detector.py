"""
Selection detection by clipboard diffing.

The only reliable cross-app signal that the user just selected something
new is that the clipboard changes as a direct result of a copy we trigger
ourselves. Passive clipboard reads can't tell a fresh selection from
clipboard history.
"""

import asyncio
import re
from typing import List, Optional

from .clipboard import ClipboardBridge
from .clock import Clock, SYSTEM_CLOCK
from .echo import SelfEchoGuard
from .types import DetectionResult, Mode


DICTATION = DetectionResult(mode=Mode.DICTATION)


def _preview(text: str, limit: int = 30) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class ModeDetector:
    """
    Decides dictation vs. command-on-selection before a recording starts.

    At most one detection runs at a time; callers arriving while one is in
    flight join its result instead of triggering a second copy.

    Usage:
        detector = ModeDetector(clipboard, echo_guard)
        result = await detector.detect_debounced()
        if result.mode is Mode.COMMAND_ON_SELECTION:
            ...result.selection_text...
    """

    def __init__(
        self,
        clipboard: ClipboardBridge,
        echo_guard: SelfEchoGuard,
        artifact_patterns: Optional[List[str]] = None,
        copy_settle_ms: float = 30,
        debounce_ms: float = 10,
        clock: Optional[Clock] = None,
    ):
        self.clipboard = clipboard
        self.echo_guard = echo_guard
        self.artifact_patterns = [re.compile(p, re.DOTALL) for p in (artifact_patterns or [])]
        self.copy_settle_ms = copy_settle_ms
        self.debounce_ms = debounce_ms
        self.clock = clock or SYSTEM_CLOCK

        self._in_flight: Optional[asyncio.Future] = None
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._debounce_waiter: Optional[asyncio.Future] = None

    @property
    def is_busy(self) -> bool:
        """True while a detection is running."""
        return self._in_flight is not None

    async def detect(self) -> DetectionResult:
        """Run one detection, or join the one already in flight."""
        if self._in_flight is None:
            self._in_flight = asyncio.ensure_future(self._detect_once())
            self._in_flight.add_done_callback(self._clear_in_flight)
        else:
            print("[Detect] Detection already running, joining in-flight result")
        return await asyncio.shield(self._in_flight)

    async def detect_debounced(self) -> DetectionResult:
        """
        Schedule a detection after the debounce delay.

        Scheduling again before the timer fires cancels the pending timer;
        every caller in the burst gets the result of the one detection
        that finally runs.
        """
        loop = asyncio.get_running_loop()

        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            print("[Detect] Pending detection superseded (debounce)")

        if self._debounce_waiter is None or self._debounce_waiter.done():
            self._debounce_waiter = loop.create_future()
        waiter = self._debounce_waiter

        self._debounce_handle = loop.call_later(self.debounce_ms / 1000, self._fire_debounced)
        return await asyncio.shield(waiter)

    def _fire_debounced(self) -> None:
        waiter = self._debounce_waiter
        self._debounce_handle = None
        self._debounce_waiter = None

        task = asyncio.ensure_future(self.detect())

        def _deliver(done: asyncio.Future) -> None:
            if waiter is None or waiter.done():
                return
            if done.cancelled():
                waiter.cancel()
            elif done.exception() is not None:
                waiter.set_exception(done.exception())
            else:
                waiter.set_result(done.result())

        task.add_done_callback(_deliver)

    def _clear_in_flight(self, _future: asyncio.Future) -> None:
        self._in_flight = None

    async def _detect_once(self) -> DetectionResult:
        try:
            before = (await self.clipboard.read()).strip()
            print(f"[Detect] Clipboard before: \"{_preview(before)}\"")

            if not await self.clipboard.trigger_copy():
                print("[Detect] Copy action failed -> dictation")
                return DICTATION

            await self.clock.sleep(self.copy_settle_ms / 1000)

            after = (await self.clipboard.read()).strip()
            print(f"[Detect] Clipboard after: \"{_preview(after)}\"")
        except Exception as e:
            print(f"[Detect] Detection failed: {e} -> dictation")
            return DICTATION

        if not after or after == before:
            print("[Detect] Clipboard unchanged -> dictation")
            return DICTATION

        if self._is_artifact(after):
            print("[Detect] Clipboard holds a known artifact (screenshot path) -> dictation")
            return DICTATION

        if self.echo_guard.is_own_echo(after):
            print("[Detect] Clipboard holds our own recent output -> dictation")
            return DICTATION

        print(f"[Detect] Fresh selection ({len(after)} chars) -> command mode")
        await self._clear_other_selections()
        return DetectionResult(mode=Mode.COMMAND_ON_SELECTION, selection_text=after)

    def _is_artifact(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.artifact_patterns)

    async def _clear_other_selections(self) -> None:
        """Best effort; a failure here never changes the detected mode."""
        try:
            if not await self.clipboard.clear_other_selections():
                print("[Detect] Clearing other selections failed (ignored)")
        except Exception as e:
            print(f"[Detect] Clearing other selections error (ignored): {e}")
