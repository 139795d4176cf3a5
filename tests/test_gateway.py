import asyncio

import pytest

from brandscout.config import Settings
from brandscout.errors import NotFound, RateLimitExceeded, UpstreamTransient
from brandscout.pipeline.gateway import DiscoveryGateway, GatewayState, RequestProgress
from brandscout.pipeline.rules import INSTAGRAM
from brandscout.pipeline.runner import DiscoveryPipeline
from brandscout.schemas import CandidateSource, DiscoveryResult

from .conftest import (
    BrokenStore,
    FakeFetcher,
    FakeScorer,
    MemoryCache,
    MemoryRateLimits,
    StubPipeline,
    make_post,
    make_profile,
)

MISS_STATES = [
    GatewayState.start,
    GatewayState.rate_check,
    GatewayState.cache_lookup,
    GatewayState.cache_miss,
    GatewayState.run_pipeline,
    GatewayState.write_cache,
    GatewayState.return_fresh,
]
HIT_STATES = [
    GatewayState.start,
    GatewayState.rate_check,
    GatewayState.cache_lookup,
    GatewayState.cache_hit,
    GatewayState.return_cached,
]


def make_gateway(clock, pipeline=None, cache=None, rate_limits=None, **settings):
    settings.setdefault("rate_limit_max_requests", 100)
    return DiscoveryGateway(
        pipeline or StubPipeline(),
        cache if cache is not None else MemoryCache(),
        rate_limits if rate_limits is not None else MemoryRateLimits(),
        Settings(**settings),
        clock=clock,
    )


def test_miss_then_hit(clock):
    pipeline = StubPipeline()
    gateway = make_gateway(clock, pipeline)
    states = []

    fresh = asyncio.run(gateway.run_discovery("@Seed", "alice", observer=states.append))
    assert not fresh.cached
    assert states == MISS_STATES

    states.clear()
    cached = asyncio.run(gateway.run_discovery("seed", "alice", observer=states.append))
    assert cached.cached
    assert states == HIT_STATES
    assert pipeline.calls == ["seed"]
    assert cached.similar_creators == fresh.similar_creators


def test_cache_payload_leaves_out_request_fields(clock):
    cache = MemoryCache()
    asyncio.run(make_gateway(clock, cache=cache).run_discovery("seed", "alice"))
    payload, created_at = cache.entries["seed"]
    assert created_at == clock.now
    assert "cached" not in payload
    assert "processing_time_ms" not in payload
    assert payload["niche"] == "fitness"


def test_cache_ttl_boundary(clock):
    pipeline = StubPipeline()
    gateway = make_gateway(clock, pipeline)
    asyncio.run(gateway.run_discovery("seed", "alice"))

    clock.advance(days=6)
    assert asyncio.run(gateway.run_discovery("seed", "alice")).cached
    clock.advance(days=1)
    assert asyncio.run(gateway.run_discovery("seed", "alice")).cached
    clock.advance(seconds=1)
    assert not asyncio.run(gateway.run_discovery("seed", "alice")).cached
    assert len(pipeline.calls) == 2


def test_peek_cache(clock):
    gateway = make_gateway(clock)
    assert asyncio.run(gateway.peek_cache("seed")) is None
    asyncio.run(gateway.run_discovery("seed", "alice"))
    result, created_at = asyncio.run(gateway.peek_cache("@SEED"))
    assert created_at == clock.now
    assert result.niche == "fitness"


def test_rate_limit(clock):
    gateway = make_gateway(clock, rate_limit_max_requests=10)
    for _ in range(10):
        asyncio.run(gateway.run_discovery("seed", "alice"))

    states = []
    with pytest.raises(RateLimitExceeded) as excinfo:
        asyncio.run(gateway.run_discovery("seed", "alice", observer=states.append))
    assert excinfo.value.retry_after == 3600
    assert states[-1] is GatewayState.rejected

    asyncio.run(gateway.run_discovery("seed", "bob"))
    clock.advance(seconds=3601)
    asyncio.run(gateway.run_discovery("seed", "alice"))


class SlowRateLimits(MemoryRateLimits):
    """Yields to the event loop while counting, like a real database."""

    async def count_since(self, requester_id, since) -> int:
        await asyncio.sleep(0)
        return await super().count_since(requester_id, since)


def test_concurrent_requests_respect_rate_limit(clock):
    rate_limits = SlowRateLimits()
    rate_limits.requests = [("alice", clock.now)] * 9
    gateway = make_gateway(clock, rate_limits=rate_limits, rate_limit_max_requests=10)

    async def burst():
        return await asyncio.gather(
            *(gateway.run_discovery("seed", "alice") for _ in range(3)), return_exceptions=True
        )

    outcomes = asyncio.run(burst())
    assert sum(1 for outcome in outcomes if isinstance(outcome, RateLimitExceeded)) == 2
    assert sum(1 for outcome in outcomes if isinstance(outcome, DiscoveryResult)) == 1
    assert len(rate_limits.requests) == 10


def test_rate_limit_store_outage_fails_open(clock):
    gateway = make_gateway(clock, rate_limits=BrokenStore(), rate_limit_max_requests=1)
    for _ in range(3):
        asyncio.run(gateway.run_discovery("seed", "alice"))


def test_cache_outage_runs_pipeline(clock):
    pipeline = StubPipeline()
    gateway = make_gateway(clock, pipeline, cache=BrokenStore())
    first = asyncio.run(gateway.run_discovery("seed", "alice"))
    second = asyncio.run(gateway.run_discovery("seed", "alice"))
    assert not first.cached and not second.cached
    assert len(pipeline.calls) == 2


def test_corrupt_cache_entry_is_a_miss(clock):
    cache = MemoryCache()
    cache.entries["seed"] = ({"similar_creators": "garbage"}, clock.now)
    pipeline = StubPipeline()
    result = asyncio.run(make_gateway(clock, pipeline, cache=cache).run_discovery("seed", "alice"))
    assert not result.cached
    assert pipeline.calls == ["seed"]


def test_pipeline_errors_propagate(clock):
    for error in (NotFound("ghost"), UpstreamTransient("actor down")):
        gateway = make_gateway(clock, StubPipeline(error=error))
        with pytest.raises(type(error)):
            asyncio.run(gateway.run_discovery("ghost", "alice"))


def test_illegal_transition():
    progress = RequestProgress()
    progress.advance(GatewayState.rate_check)
    with pytest.raises(RuntimeError):
        progress.advance(GatewayState.write_cache)
    assert not progress.finished


def build_pipeline(fetcher, scorer, clock):
    return DiscoveryPipeline(INSTAGRAM, fetcher, scorer, settings=Settings(), clock=clock)


def test_fallback_run_end_to_end(clock):
    seed = make_profile("seed", 50_000, bio="Fitness coach and athlete")
    related = [make_profile(f"related{i}", 20_000) for i in range(5)]
    curated = [make_profile(handle, 100_000) for handle in INSTAGRAM.fallback_creators["fitness"]]
    kayla, whitney, alexia = (p.handle for p in curated[:3])
    content = {
        kayla: [make_post("k1", "Visit nobull.com and use code SAVE20 #ad", likes=100)],
        whitney: [make_post("w1", "Thanks to @gymshark #ad", likes=500, comments=20)],
        alexia: [make_post("a1", "Thanks to @gymshark #ad", likes=50)],
    }
    fetcher = FakeFetcher(profiles=[seed] + curated, related=related, content=content)
    scorer = FakeScorer()
    gateway = make_gateway(clock, build_pipeline(fetcher, scorer, clock))

    result = asyncio.run(gateway.run_discovery("@seed", "alice"))

    assert result.candidate_source is CandidateSource.fallback
    assert result.niche == "fitness"
    assert scorer.batches == []
    assert len(result.similar_creators) == 12
    assert {c.similarity_score for c in result.similar_creators} == {85}
    assert len(fetcher.content_calls) == 12
    assert [o.brand for o in result.brand_opportunities] == ["Gymshark", "Nobull"]
    assert result.brand_opportunities[0].total_engagement == 570
    assert result.brand_opportunities[1].discount_codes == ["SAVE20"]


def test_related_run_scores_and_corroborates(clock):
    seed = make_profile("seed", 50_000, bio="Fitness coach")
    related = [make_profile(f"related{i:02d}", 20_000) for i in range(12)]
    content = {
        "related00": [make_post("r0", "Love @ridge #ad", likes=10)],
        "related01": [make_post("r1", "Love @ridge #ad", likes=10)],
        "related02": [make_post("r2", "Sponsored by @solo #ad", likes=999)],
    }
    fetcher = FakeFetcher(profiles=[seed], related=related, content=content)
    scorer = FakeScorer(scores={"related11": 99})
    result = asyncio.run(build_pipeline(fetcher, scorer, clock).run("seed"))

    assert result.candidate_source is CandidateSource.related
    assert [len(batch) for batch in scorer.batches] == [10, 2]
    assert result.similar_creators[0].handle == "related11"
    assert [o.brand for o in result.brand_opportunities] == ["Ridge"]


def test_missing_or_unreachable_seed(clock):
    with pytest.raises(NotFound):
        asyncio.run(build_pipeline(FakeFetcher(), FakeScorer(), clock).run("ghost"))
    with pytest.raises(UpstreamTransient):
        asyncio.run(build_pipeline(FakeFetcher(failing_handles=["seed"]), FakeScorer(), clock).run("seed"))
