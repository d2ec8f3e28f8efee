"""
Tests for meinwort rewrite provider routing.
"""

from conftest import FakeClock, StubRewriter


def make_router(*providers):
    from meinwort.router import RewriteRouter

    clock = FakeClock()
    return RewriteRouter(list(providers), clock=clock), clock


class TestRewriteRouter:
    """Tests for RewriteRouter."""

    def test_selects_lowest_priority(self):
        groq = StubRewriter(name="groq", priority=1)
        gemini = StubRewriter(name="gemini", priority=2)
        router, _ = make_router(gemini, groq)

        assert router.select_provider() is groq

    def test_skips_unconfigured(self):
        groq = StubRewriter(name="groq", priority=1, available=False)
        gemini = StubRewriter(name="gemini", priority=2)
        router, _ = make_router(groq, gemini)

        assert router.select_provider() is gemini

    def test_none_available(self):
        router, _ = make_router()
        assert router.select_provider() is None
        assert router.get_routing_status() == "No rewrite provider configured"

    def test_backoff_after_three_failures(self):
        """Test a provider is skipped after three failures until backoff expires."""
        groq = StubRewriter(name="groq", priority=1)
        gemini = StubRewriter(name="gemini", priority=2)
        router, clock = make_router(groq, gemini)

        router.record_failure("groq")
        router.record_failure("groq")
        assert router.select_provider() is groq

        router.record_failure("groq")
        assert router.select_provider() is gemini

        clock.advance(2 ** 3)
        assert router.select_provider() is groq

    def test_success_resets(self):
        groq = StubRewriter(name="groq", priority=1)
        router, _ = make_router(groq)

        for _ in range(3):
            router.record_failure("groq")
        router.record_success("groq")

        assert router.select_provider() is groq

    def test_routing_status(self):
        router, _ = make_router(StubRewriter(name="groq"))
        assert router.get_routing_status() == "Commands -> groq (stub-model)"
