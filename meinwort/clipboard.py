"""
Clipboard bridge via macOS system commands.

Reads and writes the pasteboard with pbpaste/pbcopy, posts Cmd+C through
Quartz to copy whatever is selected, and sends Escape to visible apps to
drop stale selections. Every call is blocking, so the async methods run
them off the event loop with asyncio.to_thread.
"""

import asyncio
import subprocess


C_KEY_CODE = 8  # 'c' on a US layout

CLEAR_SELECTIONS_SCRIPT = '''
tell application "System Events"
    set allApps to every application process whose visible is true
    repeat with anApp in allApps
        try
            tell anApp
                if (count of windows) > 0 then
                    key code 53
                end if
            end tell
        end try
    end repeat
end tell
'''


class ClipboardBridge:
    """
    Async facade over the system clipboard.

    Failures never raise: read() returns "" and the effectful calls
    return False, matching how callers treat them (best effort).
    """

    def __init__(self, timeout: float = 2.0):
        self.timeout = timeout

    async def read(self) -> str:
        """Return current clipboard text, or "" if unavailable."""
        return await asyncio.to_thread(self._read)

    async def write(self, text: str) -> bool:
        """Replace clipboard contents with text."""
        if not text:
            return False
        return await asyncio.to_thread(self._write, text)

    async def trigger_copy(self) -> bool:
        """Post Cmd+C to the frontmost app. Says nothing about whether anything was selected."""
        return await asyncio.to_thread(self._post_copy)

    async def clear_other_selections(self) -> bool:
        """Send Escape to visible apps so old selections don't linger."""
        return await asyncio.to_thread(self._clear_selections)

    def _read(self) -> str:
        try:
            result = subprocess.run(
                ["pbpaste"],
                capture_output=True,
                timeout=self.timeout,
            )
            return result.stdout.decode("utf-8", errors="replace")
        except (OSError, subprocess.SubprocessError) as e:
            print(f"[Clipboard] read error: {e}")
            return ""

    def _write(self, text: str) -> bool:
        try:
            subprocess.run(
                ["pbcopy"],
                input=text.encode("utf-8"),
                timeout=self.timeout,
                check=True,
            )
            return True
        except (OSError, subprocess.SubprocessError) as e:
            print(f"[Clipboard] write error: {e}")
            return False

    def _post_copy(self) -> bool:
        try:
            import Quartz
        except ImportError:
            print("[Clipboard] Quartz not available - selection copy disabled")
            return False

        try:
            key_down = Quartz.CGEventCreateKeyboardEvent(None, C_KEY_CODE, True)
            Quartz.CGEventSetFlags(key_down, Quartz.kCGEventFlagMaskCommand)
            key_up = Quartz.CGEventCreateKeyboardEvent(None, C_KEY_CODE, False)
            Quartz.CGEventSetFlags(key_up, Quartz.kCGEventFlagMaskCommand)
            Quartz.CGEventPost(Quartz.kCGHIDEventTap, key_down)
            Quartz.CGEventPost(Quartz.kCGHIDEventTap, key_up)
            return True
        except Exception as e:
            print(f"[Clipboard] copy keystroke error: {e}")
            return False

    def _clear_selections(self) -> bool:
        try:
            result = subprocess.run(
                ["osascript"],
                input=CLEAR_SELECTIONS_SCRIPT.encode("utf-8"),
                capture_output=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            print(f"[Clipboard] clear selections error: {e}")
            return False

        if result.returncode != 0:
            print(f"[Clipboard] clear selections warning: {result.stderr.decode(errors='replace').strip()}")
            return False
        return True
