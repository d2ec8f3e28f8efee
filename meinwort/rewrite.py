"""
Voice command dispatch for command-on-selection sessions.

Resolution order: canonicalize the command, answer from the result cache,
answer locally via fast-track, otherwise send one request to the rewrite
provider chosen by the router. There is exactly one remote attempt per
command; a failure is reported to the caller, which shows a fallback.
"""

import time
from typing import Dict, Optional, Tuple

from .clock import Clock, SYSTEM_CLOCK
from .commands import fast_track, normalize_command
from .errors import EndpointError, ErrorKind, RewriteError
from .metrics import MetricsWriter, log_rewrite
from .router import RewriteRouter
from .types import RewriteOutcome


CacheKey = Tuple[str, int, str]


class ResultCache:
    """
    Short-lived cache of command results.

    Keyed by (instruction, text length, text prefix); entries expire after
    ttl_seconds and the oldest entries are dropped beyond max_entries.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        prefix_chars: int = 200,
        max_entries: int = 50,
        clock: Optional[Clock] = None,
    ):
        self.ttl_seconds = ttl_seconds
        self.prefix_chars = prefix_chars
        self.max_entries = max_entries
        self.clock = clock or SYSTEM_CLOCK
        self._entries: Dict[CacheKey, Tuple[float, str]] = {}

    def key(self, instruction: str, source_text: str) -> CacheKey:
        return (instruction, len(source_text), source_text[:self.prefix_chars])

    def get(self, instruction: str, source_text: str) -> Optional[str]:
        self._prune()
        entry = self._entries.get(self.key(instruction, source_text))
        return entry[1] if entry else None

    def put(self, instruction: str, source_text: str, result: str) -> None:
        self._entries[self.key(instruction, source_text)] = (self.clock.now(), result)
        self._prune()

    def __len__(self) -> int:
        self._prune()
        return len(self._entries)

    def _prune(self) -> None:
        """Remove expired entries and enforce max_entries."""
        cutoff = self.clock.now() - self.ttl_seconds
        self._entries = {k: v for k, v in self._entries.items() if v[0] > cutoff}
        if len(self._entries) > self.max_entries:
            newest = sorted(self._entries.items(), key=lambda kv: kv[1][0])[-self.max_entries:]
            self._entries = dict(newest)


class CommandDispatcher:
    """
    Resolves a spoken command against selected text.

    Usage:
        dispatcher = CommandDispatcher(router, cache)
        outcome = await dispatcher.resolve("fass zusammen", selection)
        outcome.text  # what goes to the clipboard
    """

    def __init__(
        self,
        router: RewriteRouter,
        cache: Optional[ResultCache] = None,
        metrics: Optional[MetricsWriter] = None,
    ):
        self.router = router
        self.cache = cache or ResultCache()
        self.metrics = metrics

    async def resolve(self, raw_command: str, source_text: str) -> RewriteOutcome:
        """
        Apply raw_command to source_text.

        Raises:
            RewriteError: no provider configured, or the single remote attempt
                failed for any reason
        """
        instruction = normalize_command(raw_command)
        if instruction != raw_command.strip():
            print(f"[Rewrite] Command \"{raw_command}\" -> \"{instruction}\"")

        cached = self.cache.get(instruction, source_text)
        if cached is not None:
            print("[Rewrite] Cache hit")
            self._log("cache", instruction, 0.0)
            return RewriteOutcome(text=cached, command=raw_command, instruction=instruction, source="cache")

        local = fast_track(instruction, source_text)
        if local is not None:
            print(f"[Rewrite] Fast-track: \"{instruction}\"")
            self.cache.put(instruction, source_text, local)
            self._log("fast_track", instruction, 0.0)
            return RewriteOutcome(text=local, command=raw_command, instruction=instruction, source="fast_track")

        provider = self.router.select_provider()
        if provider is None:
            raise RewriteError("Kein Text-Verarbeitungsdienst konfiguriert")

        start = time.perf_counter()
        try:
            text = await provider.rewrite(instruction, source_text)
        except EndpointError as e:
            self.router.record_failure(provider.name)
            self._log(provider.name, instruction, (time.perf_counter() - start) * 1000, error=e)
            raise RewriteError(f"Text-Verarbeitung fehlgeschlagen: {e}") from e
        except Exception as e:
            print(f"[Rewrite] {provider.name} raised {type(e).__name__}: {e}")
            self.router.record_failure(provider.name)
            self._log(
                provider.name, instruction, (time.perf_counter() - start) * 1000,
                error=EndpointError(ErrorKind.UNKNOWN, str(e)),
            )
            raise RewriteError(f"Text-Verarbeitung fehlgeschlagen: {e}") from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        self.router.record_success(provider.name)
        print(f"[Rewrite] {provider.name} -> {elapsed_ms / 1000:.2f}s, {len(text)} chars")

        self.cache.put(instruction, source_text, text)
        self._log(provider.name, instruction, elapsed_ms)
        return RewriteOutcome(text=text, command=raw_command, instruction=instruction, source=provider.name)

    def _log(
        self,
        source: str,
        instruction: str,
        latency_ms: float,
        error: Optional[EndpointError] = None,
    ) -> None:
        if self.metrics:
            log_rewrite(
                self.metrics,
                source=source,
                instruction=instruction,
                latency_ms=latency_ms,
                ok=error is None,
                error_kind=error.kind.value if error else None,
            )
