"""
Thread-safe metrics logging with batched writes.

Usage:
    metrics = MetricsWriter(config.metrics_file)
    metrics.log("transcription", session_id=3, latency_ms=234)
"""

import json
import time
import threading
from queue import Queue, Empty
from pathlib import Path
from typing import Any


class MetricsWriter:
    """
    Thread-safe metrics writer with atomic appends.
    Events come from the engine loop and the hotkey thread; a queue
    hands them to one writer thread.
    """

    def __init__(self, metrics_file: Path):
        self.metrics_file = metrics_file
        self._queue: Queue[dict] = Queue()
        self._shutdown = threading.Event()
        self._writer_thread = threading.Thread(target=self._writer_loop, daemon=True)
        self._writer_thread.start()

    def log(self, event: str, **kwargs: Any) -> None:
        """
        Queue a metric for writing. Non-blocking.

        Args:
            event: Event name (e.g., "detection", "transcription", "rewrite")
            **kwargs: Additional fields to log
        """
        entry = {
            "ts": time.time(),
            "event": event,
            **kwargs
        }
        self._queue.put(entry)

    def _writer_loop(self) -> None:
        """Background thread that batches and writes metrics."""
        while not self._shutdown.is_set():
            try:
                entries = [self._queue.get(timeout=1.0)]

                while True:
                    try:
                        entries.append(self._queue.get_nowait())
                    except Empty:
                        break

                self._write_entries(entries)

            except Empty:
                continue
            except Exception as e:
                print(f"[Metrics] Writer error: {e}")

    def _write_entries(self, entries: list[dict]) -> None:
        try:
            self.metrics_file.parent.mkdir(parents=True, exist_ok=True)

            with open(self.metrics_file, "a", encoding="utf-8") as f:
                for entry in entries:
                    f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            print(f"[Metrics] Failed to write metrics: {e}")

    def flush(self) -> None:
        """Flush any pending metrics to disk."""
        entries = []
        while True:
            try:
                entries.append(self._queue.get_nowait())
            except Empty:
                break

        if entries:
            self._write_entries(entries)

    def shutdown(self) -> None:
        """Shutdown the writer thread gracefully."""
        self._shutdown.set()
        self.flush()
        self._writer_thread.join(timeout=2.0)


# Global instance (initialized lazily)
_metrics: MetricsWriter | None = None


def get_metrics(metrics_file: Path) -> MetricsWriter:
    """Get or create the global metrics writer."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsWriter(metrics_file)
    return _metrics


# Typed helper functions for consistent event logging

def log_session_start(metrics: MetricsWriter, session_id: int) -> None:
    metrics.log("session_start", session_id=session_id)


def log_detection(
    metrics: MetricsWriter,
    session_id: int,
    mode: str,
    selection_chars: int,
) -> None:
    metrics.log(
        "detection",
        session_id=session_id,
        mode=mode,
        selection_chars=selection_chars,
    )


def log_transcription_attempt(
    metrics: MetricsWriter,
    provider: str,
    attempt: int,
    temperature: float,
    ok: bool,
    error_kind: str | None = None,
) -> None:
    metrics.log(
        "transcription_attempt",
        provider=provider,
        attempt=attempt,
        temperature=temperature,
        ok=ok,
        error_kind=error_kind,
    )


def log_transcription(
    metrics: MetricsWriter,
    session_id: int,
    mode: str,
    latency_ms: float,
    text: str,
    confidence: float | None = None,
    placeholder: bool = False,
) -> None:
    """Log transcription event."""
    metrics.log(
        "transcription",
        session_id=session_id,
        mode=mode,
        latency_ms=latency_ms,
        text=text[:200],  # Truncate for metrics
        confidence=confidence,
        placeholder=placeholder,
    )


def log_rewrite(
    metrics: MetricsWriter,
    source: str,
    instruction: str,
    latency_ms: float,
    ok: bool,
    error_kind: str | None = None,
) -> None:
    """Log rewrite event. source is "cache", "fast_track" or a provider name."""
    metrics.log(
        "rewrite",
        source=source,
        instruction=instruction[:100],
        latency_ms=latency_ms,
        ok=ok,
        error_kind=error_kind,
    )


def log_output(
    metrics: MetricsWriter,
    session_id: int,
    method: str,  # "dictation" | "rewrite" | "fallback"
    written: bool,
) -> None:
    metrics.log(
        "output",
        session_id=session_id,
        method=method,
        written=written,
    )


def log_session_complete(
    metrics: MetricsWriter,
    session_id: int,
    total_duration_ms: float,
    mode: str,
    final_text: str,
    error: str | None = None,
) -> None:
    """Log session_complete event."""
    metrics.log(
        "session_complete",
        session_id=session_id,
        total_duration_ms=total_duration_ms,
        mode=mode,
        final_text=final_text[:500],  # Truncate for metrics
        error=error,
    )


def log_ignored(metrics: MetricsWriter, reason: str, phase: str) -> None:
    """Log an event that arrived in a phase where it has no effect."""
    metrics.log("ignored", reason=reason, phase=phase)
