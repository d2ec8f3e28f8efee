"""
Recording lifecycle.

One RecordingOrchestrator owns the SessionState and drives every
recording from hotkey to clipboard: detect the mode, capture, transcribe,
then either write the dictation or apply the spoken command to the
selection. All methods run on the engine's event loop; other threads
post toggle()/stop() with asyncio.run_coroutine_threadsafe.
"""

import asyncio
import time
from typing import Callable, Dict, Optional, Tuple

from .audio import CaptureDevice
from .clipboard import ClipboardBridge
from .clock import Clock, SYSTEM_CLOCK
from .detector import ModeDetector
from .echo import SelfEchoGuard
from .errors import CaptureError, EndpointError, RewriteError, describe_error
from .metrics import (
    MetricsWriter, log_detection, log_ignored, log_output,
    log_session_complete, log_session_start, log_transcription,
)
from .retry import TranscriptionRetryEngine
from .rewrite import CommandDispatcher
from .types import (
    AudioPayload, DetectionResult, Mode, Phase, SessionState, StatusSnapshot,
    TranscriptionOptions,
)


COMMAND_PROMPT = "Dies ist deutsche Sprache. Transkribiere diesen kurzen Sprachbefehl präzise."
DICTATION_PROMPT = (
    "Dies ist deutsche Sprache. Nutze MAXIMALE Empfindlichkeit um auch extrem leise "
    "Sprache zu erfassen. Erkenne Flüstern und schwache Audio-Signale aggressiv."
)

# (temperature, prompt) per mode
MODE_OPTIONS: Dict[Mode, Tuple[float, str]] = {
    Mode.COMMAND_ON_SELECTION: (0.2, COMMAND_PROMPT),
    Mode.DICTATION: (1.0, DICTATION_PROMPT),
}

FALLBACK_TEMPLATE = (
    'Befehl erkannt: "{command}"\n\n'
    "Fehler bei der Verarbeitung. Bitte versuchen Sie es erneut."
)

PERMISSION_DENIED_TEXT = "Kein Mikrofonzugriff. Bitte Mikrofon in den Systemeinstellungen erlauben."
CLIPBOARD_FAILED_TEXT = "Text konnte nicht in die Zwischenablage geschrieben werden"


def options_for_mode(mode: Mode, language: str) -> TranscriptionOptions:
    """Whisper parameters for the first attempt of a session in this mode."""
    temperature, prompt = MODE_OPTIONS[mode]
    return TranscriptionOptions(language=language, temperature=temperature, prompt=prompt)


def _preview(text: str, limit: int = 50) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class RecordingOrchestrator:
    """
    State machine over detection, capture, transcription and rewriting.

    Phases never overlap: a toggle while transcribing or rewriting is
    ignored, a toggle or stop while detecting cancels the pending start,
    and every session ends back in IDLE.

    Usage:
        orchestrator = RecordingOrchestrator(state, detector, capture,
                                             transcriber, dispatcher,
                                             clipboard, echo_guard)
        await orchestrator.toggle()   # start
        await orchestrator.toggle()   # stop and process
    """

    def __init__(
        self,
        state: SessionState,
        detector: ModeDetector,
        capture: CaptureDevice,
        transcriber: TranscriptionRetryEngine,
        dispatcher: CommandDispatcher,
        clipboard: ClipboardBridge,
        echo_guard: SelfEchoGuard,
        clock: Optional[Clock] = None,
        metrics: Optional[MetricsWriter] = None,
        language: str = "de",
        on_status_change: Optional[Callable[[StatusSnapshot], None]] = None,
    ):
        self.state = state
        self.detector = detector
        self.capture = capture
        self.transcriber = transcriber
        self.dispatcher = dispatcher
        self.clipboard = clipboard
        self.echo_guard = echo_guard
        self.clock = clock or SYSTEM_CLOCK
        self.metrics = metrics
        self.language = language
        self.on_status_change = on_status_change

        self._started_at = 0.0

    # ------------------------------------------------------------------
    # Commands from the presentation layer

    def snapshot(self) -> StatusSnapshot:
        s = self.state
        return StatusSnapshot(
            phase=s.phase,
            mode=s.mode,
            recording=s.recording_indicator,
            last_error=s.last_error,
            last_result=s.last_result,
            last_command=s.last_command,
        )

    async def toggle(self) -> None:
        """Hotkey pressed: start, cancel or finish depending on the phase."""
        phase = self.state.phase
        if phase is Phase.IDLE:
            await self._start_session()
        elif phase is Phase.DETECTING:
            self._cancel_pending_start("toggle")
        elif phase is Phase.RECORDING:
            await self._finish_session()
        else:
            print(f"[Session] Toggle ignored while {phase.value}")
            if self.metrics:
                log_ignored(self.metrics, reason="toggle", phase=phase.value)

    async def stop(self) -> None:
        """Stop key pressed: like toggle, but never starts a recording."""
        phase = self.state.phase
        if phase is Phase.DETECTING:
            self._cancel_pending_start("stop")
        elif phase is Phase.RECORDING:
            await self._finish_session()
        elif phase is not Phase.IDLE:
            print(f"[Session] Stop ignored while {phase.value}")
            if self.metrics:
                log_ignored(self.metrics, reason="stop", phase=phase.value)

    async def copy_last_result_again(self) -> bool:
        """Put the last shown result back on the clipboard."""
        text = self.state.last_result
        if not text:
            print("[Session] Nothing to copy yet")
            return False
        written = await self.clipboard.write(text)
        print(f"[Session] Copied last result again ({len(text)} chars)" if written
              else "[Session] Copying last result failed")
        return written

    # ------------------------------------------------------------------
    # Start path: IDLE -> DETECTING -> RECORDING

    async def _start_session(self) -> None:
        # Everything up to the first await runs before any other hotkey
        # event is processed.
        self.state.session_id += 1
        session_id = self.state.session_id
        self.state.recording_indicator = True
        self.state.phase = Phase.DETECTING
        self.state.mode = Mode.DICTATION
        self.state.selection_snapshot = None
        self.state.last_error = None
        self._started_at = self.clock.now()
        self._notify()

        print(f"[Session] #{session_id} starting")
        if self.metrics:
            log_session_start(self.metrics, session_id)

        try:
            detection, permitted = await asyncio.gather(
                self.detector.detect_debounced(),
                self.capture.request_permission(),
            )
        except Exception as e:
            if self._is_stale(session_id, "start"):
                return
            self._abort_start(describe_error(e))
            return

        if self._is_stale(session_id, "detection"):
            return

        if self.metrics:
            log_detection(
                self.metrics,
                session_id,
                mode=detection.mode.value,
                selection_chars=len(detection.selection_text),
            )

        if not permitted:
            self._abort_start(PERMISSION_DENIED_TEXT)
            return

        try:
            generation = await self.capture.start()
        except CaptureError as e:
            if self._is_stale(session_id, "capture start"):
                return
            self._abort_start(describe_error(e))
            return

        if self._is_stale(session_id, "capture start"):
            # Only the newest session may own the microphone
            await self._discard_capture(generation)
            return

        self._enter_recording(detection)

    def _enter_recording(self, detection: DetectionResult) -> None:
        command = detection.mode is Mode.COMMAND_ON_SELECTION and bool(detection.selection_text)
        self.state.mode = Mode.COMMAND_ON_SELECTION if command else Mode.DICTATION
        self.state.selection_snapshot = detection.selection_text if command else None
        self.state.phase = Phase.RECORDING
        self._notify()

        if command:
            print(f"[Session] Recording voice command for selection ({len(detection.selection_text)} chars)")
        else:
            print("[Session] Recording dictation")

    def _cancel_pending_start(self, reason: str) -> None:
        self.state.session_id += 1
        print(f"[Session] Pending start cancelled ({reason})")
        self._reset_to_idle()
        self._notify()

    def _abort_start(self, message: str) -> None:
        print(f"[Session] Start failed: {message}")
        self.state.last_error = message
        self._reset_to_idle()
        self._notify()

    def _is_stale(self, session_id: int, what: str) -> bool:
        if session_id == self.state.session_id:
            return False
        print(f"[Session] Discarding late {what} result of session #{session_id}")
        return True

    async def _discard_capture(self, generation: int) -> None:
        try:
            await self.capture.release(generation)
        except CaptureError as e:
            print(f"[Session] Stopping orphaned capture failed: {e}")

    # ------------------------------------------------------------------
    # Finish path: RECORDING -> TRANSCRIBING -> (REWRITING_TEXT) -> IDLE

    async def _finish_session(self) -> None:
        session_id = self.state.session_id
        mode = self.state.mode
        self.state.phase = Phase.TRANSCRIBING
        self.state.recording_indicator = False
        self._notify()

        final_text = ""
        try:
            try:
                payload = await self.capture.stop()
            except CaptureError as e:
                self.state.last_error = describe_error(e)
                print(f"[Session] Capture failed: {e}")
                return

            text = await self._transcribe(session_id, payload, mode)
            if text is None:
                return

            selection = self.state.selection_snapshot
            if mode is Mode.COMMAND_ON_SELECTION and not selection:
                print("[Session] Selection lost, treating as dictation")
                mode = Mode.DICTATION
                self.state.mode = Mode.DICTATION

            if mode is Mode.COMMAND_ON_SELECTION:
                final_text = await self._apply_command(session_id, text, selection)
            else:
                final_text = await self._write_dictation(session_id, text)

        finally:
            total_ms = (self.clock.now() - self._started_at) * 1000
            if self.metrics:
                log_session_complete(
                    self.metrics,
                    session_id,
                    total_duration_ms=total_ms,
                    mode=mode.value,
                    final_text=final_text,
                    error=self.state.last_error,
                )
            print(f"[Session] #{session_id} done in {total_ms / 1000:.2f}s")
            self._reset_to_idle()
            self._notify()

    async def _transcribe(self, session_id: int, payload: AudioPayload, mode: Mode) -> Optional[str]:
        """Transcribed text, or None when there is nothing to process further."""
        print(f"[Session] Transcribing {payload.duration_ms / 1000:.2f}s of audio ({mode.value})")
        start = time.perf_counter()
        try:
            result = await self.transcriber.transcribe(payload, options_for_mode(mode, self.language))
        except EndpointError as e:
            self.state.last_error = describe_error(e)
            print(f"[Session] Transcription failed: {e}")
            return None
        latency_ms = (time.perf_counter() - start) * 1000

        if self.metrics:
            log_transcription(
                self.metrics,
                session_id,
                mode=mode.value,
                latency_ms=latency_ms,
                text=result.text,
                confidence=result.confidence,
                placeholder=result.is_placeholder,
            )

        if result.is_placeholder:
            # Guidance for the user only; never written or rewritten
            self.state.last_result = result.text
            print(f"[Session] {result.text}")
            return None

        text = result.text.strip()
        print(f"[Session] {latency_ms / 1000:.2f}s -> \"{_preview(text)}\"")
        return text

    async def _write_dictation(self, session_id: int, text: str) -> str:
        written = await self.clipboard.write(text)
        if written:
            self.echo_guard.clear()
            self.state.last_result = text
        else:
            self.state.last_error = CLIPBOARD_FAILED_TEXT
            print("[Session] Clipboard write failed")

        if self.metrics:
            log_output(self.metrics, session_id, method="dictation", written=written)
        return text if written else ""

    async def _apply_command(self, session_id: int, command: str, selection: str) -> str:
        self.state.phase = Phase.REWRITING_TEXT
        self.state.last_command = command
        self._notify()
        print(f"[Session] Command: \"{command}\" on {len(selection)} chars")

        try:
            outcome = await self.dispatcher.resolve(command, selection)
        except RewriteError as e:
            fallback = FALLBACK_TEMPLATE.format(command=command)
            print(f"[Session] Rewrite failed: {e}")
            self.state.last_error = describe_error(e)
            self.state.last_result = fallback
            written = await self.clipboard.write(fallback)
            if self.metrics:
                log_output(self.metrics, session_id, method="fallback", written=written)
            return fallback

        written = await self.clipboard.write(outcome.text)
        if written:
            self.echo_guard.record_own_output(outcome.text)
            self.state.last_result = outcome.text
            print(f"[Session] Result ({outcome.source}): \"{_preview(outcome.text)}\"")
        else:
            self.state.last_error = CLIPBOARD_FAILED_TEXT
            print("[Session] Clipboard write failed")

        if self.metrics:
            log_output(self.metrics, session_id, method="rewrite", written=written)
        return outcome.text if written else ""

    # ------------------------------------------------------------------

    def _reset_to_idle(self) -> None:
        self.state.phase = Phase.IDLE
        self.state.mode = Mode.DICTATION
        self.state.selection_snapshot = None
        self.state.recording_indicator = False

    def _notify(self) -> None:
        if self.on_status_change is None:
            return
        try:
            self.on_status_change(self.snapshot())
        except Exception as e:
            print(f"[Session] Status callback error: {e}")
