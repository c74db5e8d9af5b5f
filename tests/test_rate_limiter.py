import pytest

from discfilter.rate_limiter import (
    LimitKind,
    Limiter,
    Quota,
    RateLimited,
    RateLimiterBuilder,
    TooLarge,
    TooSoon,
)


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def _limiter():
    return Limiter.from_quota(Quota(replenish_all_every=2.0, max_tokens=4))


def test_it_works_a():
    limiter = _limiter()
    key = 10
    limiter.allows(0.0, key, 4)
    limiter.prune(0.1)
    with pytest.raises(RateLimited):
        limiter.allows(0.1, key, 1)
    limiter.allows(0.5, key, 1)
    limiter.allows(1.0, key, 1)
    with pytest.raises(RateLimited):
        limiter.allows(1.4, key, 1)
    limiter.allows(2.0, key, 2)
    assert limiter.tat_per_key[key] == 4_000_000_000


def test_it_works_b():
    limiter = _limiter()
    key = 10
    for t in (0.0, 0.1, 0.2, 0.3):
        limiter.allows(t, key, 1)
    with pytest.raises(TooSoon):
        limiter.allows(0.4, key, 1)


def test_too_soon_reports_wait():
    limiter = _limiter()
    limiter.allows(0.0, "k", 4)
    with pytest.raises(TooSoon) as info:
        limiter.allows(0.1, "k", 1)
    assert info.value.wait == pytest.approx(0.4)


def test_too_large():
    limiter = _limiter()
    with pytest.raises(TooLarge):
        limiter.allows(0.0, "k", 5)


def test_from_quota_errors():
    with pytest.raises(ValueError):
        Limiter.from_quota(Quota(replenish_all_every=1.0, max_tokens=0))
    with pytest.raises(ValueError):
        Limiter.from_quota(Quota(replenish_all_every=0.0, max_tokens=1))


def test_prune_removes_full_buckets():
    limiter = _limiter()
    limiter.allows(0.0, "a", 1)
    limiter.allows(1.0, "b", 4)
    limiter.prune(1.5)
    assert set(limiter.tat_per_key) == {"b"}


def test_build_requires_total_quota():
    with pytest.raises(ValueError):
        RateLimiterBuilder().node_one_every(1.0).build()


def test_build_propagates_quota_errors():
    with pytest.raises(ValueError):
        RateLimiterBuilder().total_one_every(1.0).ip_n_every(0, 1.0).build()


def test_total_requests_per_second():
    assert RateLimiterBuilder().total_one_every(0.5).build().total_requests_per_second() == 2.0
    assert RateLimiterBuilder().total_n_every(4, 2.0).build().total_requests_per_second() == 4.0


def test_total_limit():
    clock = FakeClock()
    rl = RateLimiterBuilder(clock=clock).total_one_every(1.0).build()
    rl.allows(LimitKind.TOTAL)
    with pytest.raises(TooSoon):
        rl.allows(LimitKind.TOTAL)
    clock.now += 1.0
    rl.allows(LimitKind.TOTAL)
    assert len(rl.total_rl.tat_per_key) == 1


def test_node_limit_per_key():
    clock = FakeClock()
    rl = RateLimiterBuilder(clock=clock).total_n_every(100, 1.0).node_one_every(1.0).build()
    rl.allows(LimitKind.NODE_ID, b"node-a")
    with pytest.raises(TooSoon) as info:
        rl.allows(LimitKind.NODE_ID, b"node-a")
    assert info.value.wait == pytest.approx(1.0)
    rl.allows(LimitKind.NODE_ID, b"node-b")
    assert set(rl.node_rl.tat_per_key) == {b"node-a", b"node-b"}


def test_unconfigured_limits_are_not_tracked():
    rl = RateLimiterBuilder().total_n_every(100, 1.0).build()
    for _ in range(10):
        rl.allows(LimitKind.IP, "127.0.0.1")
    assert rl.ip_rl is None
    assert rl.total_rl.tat_per_key == {}


def test_rate_limiter_prune():
    clock = FakeClock()
    rl = RateLimiterBuilder(clock=clock).total_one_every(1.0).ip_one_every(1.0).build()
    rl.allows(LimitKind.IP, "127.0.0.1")
    rl.allows(LimitKind.TOTAL)
    clock.now += 5.0
    rl.prune()
    assert rl.ip_rl.tat_per_key == {}
    assert rl.total_rl.tat_per_key == {}


def test_builder_returns_new_instances():
    base = RateLimiterBuilder()
    built = base.total_one_every(1.0)
    assert base.total_quota is None
    assert built.total_quota == Quota(1.0, 1)