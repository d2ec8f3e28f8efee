"""
Self-echo suppression.

After a command session we put the rewritten text on the clipboard. If the
user presses the hotkey again while that text is still selected, the
triggered copy yields exactly our own output and detection would treat it
as a fresh selection, rewriting its own result in a loop. The guard
remembers what we wrote and for how long to ignore it.
"""

from typing import Optional

from .clock import Clock, SYSTEM_CLOCK
from .types import LastOutput, SessionState


class SelfEchoGuard:
    """
    Tracks the last text we wrote on the user's behalf.

    State lives in SessionState.last_output so the presentation layer and
    tests see one source of truth.
    """

    def __init__(self, state: SessionState, window_seconds: float, clock: Optional[Clock] = None):
        self.state = state
        self.window_seconds = window_seconds
        self.clock = clock or SYSTEM_CLOCK

    def record_own_output(self, text: str) -> None:
        """Call right after our text landed on the clipboard."""
        self.state.last_output = LastOutput(text=text.strip(), written_at=self.clock.now())

    def is_own_echo(self, candidate: str) -> bool:
        """True if candidate is our own recent output (within the window)."""
        last = self.state.last_output
        if last is None:
            return False
        age = self.clock.now() - last.written_at
        if age >= self.window_seconds:
            return False
        return candidate.strip() == last.text

    def clear(self) -> None:
        self.state.last_output = None
