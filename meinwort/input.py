"""
Input controller for the recording hotkeys.

One key toggles recording (start, or stop and process); a second key only
ever stops. Held keys auto-repeat on macOS, so only the first press of a
key counts until it is released.
"""

import threading
from typing import Callable, Optional, Set


def key_name(key) -> Optional[str]:
    """
    Normalized name of a pynput key.

    Special keys (pynput.keyboard.Key members) have a .name like "f9" or
    "esc"; character keys (KeyCode) have a .char.
    """
    name = getattr(key, "name", None)
    if name:
        return name.lower()
    char = getattr(key, "char", None)
    if char:
        return char.lower()
    return None


class InputController:
    """
    Translates raw key events into toggle/stop signals.

    Callbacks run on the listener thread and must only hand work to the
    engine loop (run_coroutine_threadsafe), never block.

    Usage:
        controller = InputController("f9", "esc")
        controller.on_toggle = toggle_fn
        controller.on_stop = stop_fn

        # Wire to pynput listener
        listener = keyboard.Listener(
            on_press=controller.on_key_press,
            on_release=controller.on_key_release
        )
    """

    def __init__(self, toggle_key: str = "f9", stop_key: str = "esc"):
        self.toggle_key = toggle_key.lower()
        self.stop_key = stop_key.lower()
        self._lock = threading.Lock()
        self._pressed: Set[str] = set()

        # Callbacks
        self.on_toggle: Optional[Callable[[], None]] = None
        self.on_stop: Optional[Callable[[], None]] = None

    def on_key_press(self, key) -> None:
        name = key_name(key)
        if name not in (self.toggle_key, self.stop_key):
            return

        with self._lock:
            if name in self._pressed:
                return  # Auto-repeat
            self._pressed.add(name)

        if name == self.toggle_key:
            self._fire(self.on_toggle, "toggle")
        else:
            self._fire(self.on_stop, "stop")

    def on_key_release(self, key) -> None:
        name = key_name(key)
        with self._lock:
            self._pressed.discard(name)

    def _fire(self, callback: Optional[Callable[[], None]], label: str) -> None:
        if callback is None:
            print(f"[Input] {label} pressed (no handler)")
            return
        try:
            callback()
        except Exception as e:
            print(f"[Input] {label} handler error: {e}")
