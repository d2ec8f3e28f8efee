"""
Main entry point for MeinWort.

Run with: python -m meinwort

Threads: the rumps menu bar owns the main thread, pynput runs its own
listener thread, and the engine runs on a dedicated asyncio loop thread.
The first two only post coroutines onto the engine loop.
"""

import asyncio
import signal
import sys
import threading
from typing import Callable, Optional

from pynput import keyboard

from . import __version__
from .audio import CaptureDevice
from .clipboard import ClipboardBridge
from .clock import SYSTEM_CLOCK
from .config import Config
from .detector import ModeDetector
from .echo import SelfEchoGuard
from .input import InputController
from .metrics import MetricsWriter, get_metrics
from .providers import RewriteProvider
from .providers.gemini import GeminiRewriter
from .providers.groq import GroqRewriter, GroqTranscriber
from .retry import RetryPolicy, SilencePolicy, TranscriptionRetryEngine
from .rewrite import CommandDispatcher, ResultCache
from .router import RewriteRouter
from .session import RecordingOrchestrator
from .types import ConfigSnapshot, SessionState, StatusSnapshot
from .ui.menu_bar import MenuBarApp
from .validate import validate_keys


# Global state
config: Config
metrics: MetricsWriter
menu_bar: MenuBarApp
orchestrator: RecordingOrchestrator
engine_loop: Optional[asyncio.AbstractEventLoop] = None
_keyboard_listener: Optional[keyboard.Listener] = None


def build_rewrite_providers(snapshot: ConfigSnapshot) -> list[RewriteProvider]:
    """Rewrite providers in the configured order; earlier entries are preferred."""
    providers: list[RewriteProvider] = []
    for name in snapshot.rewrite_providers:
        if name == "groq":
            provider = GroqRewriter(snapshot.groq_api_key, system_prompt=snapshot.editing_prompt)
        elif name == "gemini":
            provider = GeminiRewriter(snapshot.gemini_api_key, system_prompt=snapshot.editing_prompt)
        else:
            print(f"  Unknown rewrite provider: {name}")
            continue
        provider.priority = len(providers) + 1
        providers.append(provider)
    return providers


def build_orchestrator(
    snapshot: ConfigSnapshot,
    metrics: Optional[MetricsWriter] = None,
    on_status_change: Optional[Callable[[StatusSnapshot], None]] = None,
) -> RecordingOrchestrator:
    """Wire the engine from a config snapshot."""
    clock = SYSTEM_CLOCK
    state = SessionState()
    clipboard = ClipboardBridge()
    echo_guard = SelfEchoGuard(state, snapshot.echo_window_seconds, clock=clock)

    detector = ModeDetector(
        clipboard,
        echo_guard,
        artifact_patterns=snapshot.artifact_patterns,
        copy_settle_ms=snapshot.copy_settle_ms,
        debounce_ms=snapshot.detection_debounce_ms,
        clock=clock,
    )
    transcriber = TranscriptionRetryEngine(
        GroqTranscriber(snapshot.groq_api_key, model=snapshot.transcription_model),
        policy=RetryPolicy.from_snapshot(snapshot),
        silence=SilencePolicy.from_snapshot(snapshot),
        clock=clock,
        metrics=metrics,
    )
    router = RewriteRouter(build_rewrite_providers(snapshot), clock=clock)
    dispatcher = CommandDispatcher(
        router,
        ResultCache(snapshot.cache_ttl_seconds, snapshot.cache_prefix_chars, clock=clock),
        metrics=metrics,
    )
    print(f"  {router.get_routing_status()}")

    return RecordingOrchestrator(
        state,
        detector,
        CaptureDevice(snapshot.sample_rate, snapshot.input_device),
        transcriber,
        dispatcher,
        clipboard,
        echo_guard,
        clock=clock,
        metrics=metrics,
        language=snapshot.language,
        on_status_change=on_status_change,
    )


def main():
    """Main entry point."""
    global config, metrics, menu_bar, orchestrator, engine_loop, _keyboard_listener

    print(f"MeinWort v{__version__} starting...")

    # Load configuration
    config = Config.load()
    snapshot = config.snapshot()
    print(f"  Language: {snapshot.language}")
    print(f"  Rewrite providers: {snapshot.rewrite_providers}")

    metrics = get_metrics(config.metrics_file)
    validate_keys(snapshot)

    menu_bar = MenuBarApp()
    orchestrator = build_orchestrator(snapshot, metrics, on_status_change=menu_bar.update_status)

    # Engine loop
    engine_loop = asyncio.new_event_loop()
    threading.Thread(target=engine_loop.run_forever, name="meinwort-engine", daemon=True).start()

    input_controller = InputController(config.toggle_key, config.stop_key)
    input_controller.on_toggle = lambda: _post(orchestrator.toggle)
    input_controller.on_stop = lambda: _post(orchestrator.stop)

    menu_bar.on_toggle = lambda: _post(orchestrator.toggle)
    menu_bar.on_copy_last = lambda: _post(orchestrator.copy_last_result_again)
    menu_bar.on_quit = shutdown

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    _keyboard_listener = keyboard.Listener(
        on_press=input_controller.on_key_press,
        on_release=input_controller.on_key_release
    )
    _keyboard_listener.start()
    print("  Keyboard listener started")

    print(f"Ready! Press {config.toggle_key} to record, {config.stop_key} to stop.")
    print("Press Ctrl+C to quit.")
    menu_bar.show_notification("Gestartet", f"{config.toggle_key.upper()} drücken zum Aufnehmen")

    # Run menu bar (blocks)
    try:
        menu_bar.run()
    finally:
        shutdown()


def _post(command) -> None:
    """Schedule an orchestrator command on the engine loop from another thread."""
    if engine_loop is None or not engine_loop.is_running():
        print("Engine not running, ignoring input")
        return
    future = asyncio.run_coroutine_threadsafe(command(), engine_loop)
    future.add_done_callback(_report_failure)


def _report_failure(future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        print(f"Engine command failed: {error!r}")


_shut_down = False


def shutdown() -> None:
    """Clean shutdown."""
    global _shut_down
    if _shut_down:
        return
    _shut_down = True
    print("\nShutting down...")

    if _keyboard_listener:
        _keyboard_listener.stop()

    if engine_loop is not None:
        engine_loop.call_soon_threadsafe(engine_loop.stop)

    metrics.shutdown()
    print("Tschüss!")


def _signal_handler(signum, frame):
    """Handle SIGINT/SIGTERM."""
    shutdown()
    sys.exit(0)


if __name__ == "__main__":
    main()
