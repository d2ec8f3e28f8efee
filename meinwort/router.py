"""
Rewrite provider routing.

Picks the preferred rewrite provider among those with credentials and
tracks provider health: after repeated failures a provider is backed off
exponentially so the next command goes to a healthy one.
"""

from typing import Dict, List, Optional

from .clock import Clock, SYSTEM_CLOCK
from .providers import RewriteProvider


FAILURES_BEFORE_BACKOFF = 3
MAX_BACKOFF_SECONDS = 300


class RewriteRouter:
    """
    Routes rewrite requests to the best available provider.

    Routing logic:
    - Only providers with credentials are considered
    - Lowest priority value wins
    - Providers in backoff are skipped until their backoff expires
    """

    def __init__(self, providers: List[RewriteProvider], clock: Optional[Clock] = None):
        self.providers = list(providers)
        self.clock = clock or SYSTEM_CLOCK
        self._failures: Dict[str, int] = {}
        self._backoff_until: Dict[str, float] = {}

    def get_available_providers(self) -> List[RewriteProvider]:
        """Providers that are configured and not backing off."""
        now = self.clock.now()
        return [
            p for p in self.providers
            if p.is_available() and now >= self._backoff_until.get(p.name, 0)
        ]

    def select_provider(self) -> Optional[RewriteProvider]:
        """Best available provider, or None if none is usable."""
        available = self.get_available_providers()
        if not available:
            return None
        return min(available, key=lambda p: p.priority)

    def record_failure(self, provider_name: str) -> None:
        """Record a provider failure for backoff logic."""
        failures = self._failures.get(provider_name, 0) + 1
        self._failures[provider_name] = failures

        if failures >= FAILURES_BEFORE_BACKOFF:
            # Exponential backoff: 2^failures seconds, capped
            backoff_seconds = min(2 ** failures, MAX_BACKOFF_SECONDS)
            self._backoff_until[provider_name] = self.clock.now() + backoff_seconds
            print(f"[Router] {provider_name} backing off for {backoff_seconds}s after {failures} failures")

    def record_success(self, provider_name: str) -> None:
        """Record a provider success, reset failure count."""
        self._failures[provider_name] = 0
        self._backoff_until.pop(provider_name, None)

    def get_routing_status(self) -> str:
        """Human-readable routing status for the console."""
        provider = self.select_provider()
        if provider is None:
            return "No rewrite provider configured"
        return f"Commands -> {provider.name} ({provider.model})"
