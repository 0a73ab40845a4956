from datetime import datetime, timedelta

import pytest

from grlkrash.errors import RateLimitExceeded
from grlkrash.social.rate_limits import RateLimitManager, next_hour, next_midnight

LIMITS = {"twitter:post": {"per_hour": 5, "per_day": 8}}


class Now:
    def __init__(self):
        self.value = datetime(2025, 3, 1, 10, 30)

    def __call__(self):
        return self.value


@pytest.fixture
def now():
    return Now()


@pytest.fixture
def limits(now):
    return RateLimitManager(LIMITS, clock=now)


def test_reset_boundaries():
    t = datetime(2025, 3, 1, 23, 45, 10)
    assert next_hour(t) == datetime(2025, 3, 2, 0, 0)
    assert next_midnight(t) == datetime(2025, 3, 2, 0, 0)


def test_unknown_key_is_unlimited(limits, now):
    assert limits.check_limit("myspace", "post")
    limits.increment_usage("myspace", "post")
    remaining = limits.get_remaining_limits("myspace", "post")
    assert remaining["hourly"]["remaining"] == float("inf")
    assert remaining["daily"]["reset_at"] == now.value


def test_unused_known_key_reports_infinite(limits):
    assert limits.get_remaining_limits("twitter", "post")["hourly"]["remaining"] == float("inf")


def test_hourly_cap_blocks(limits):
    for _ in range(5):
        limits.acquire("twitter", "post")
    assert not limits.check_limit("twitter", "post")
    with pytest.raises(RateLimitExceeded) as exc:
        limits.acquire("twitter", "post")
    assert exc.value.reset_at == datetime(2025, 3, 1, 11, 0)


def test_hourly_window_resets(limits, now):
    for _ in range(5):
        limits.acquire("twitter", "post")
    now.value += timedelta(hours=1)
    assert limits.check_limit("twitter", "post")
    remaining = limits.get_remaining_limits("twitter", "post")
    assert remaining["hourly"]["remaining"] == 5
    assert remaining["daily"]["remaining"] == 3


def test_daily_cap_survives_hour_change(limits, now):
    for _ in range(5):
        limits.acquire("twitter", "post")
    now.value += timedelta(hours=1)
    for _ in range(3):
        limits.acquire("twitter", "post")
    assert not limits.check_limit("twitter", "post")
    with pytest.raises(RateLimitExceeded) as exc:
        limits.acquire("twitter", "post")
    assert exc.value.reset_at == datetime(2025, 3, 2, 0, 0)


def test_warning_events_at_eighty_percent(limits):
    hourly, daily = [], []
    limits.on("approaching_hourly_limit", hourly.append)
    limits.on("approaching_daily_limit", daily.append)

    for _ in range(4):
        limits.increment_usage("twitter", "post")

    assert hourly == [{"platform": "twitter", "action": "post", "current": 4, "limit": 5}]
    assert daily == []


def test_default_limits_from_config(now):
    limits = RateLimitManager(clock=now)
    assert limits.limits["instagram:post"] == {"per_hour": 3, "per_day": 25}


def test_snapshot_and_cleanup(limits):
    limits.acquire("twitter", "post")
    assert limits.snapshot()["twitter:post"]["hourly"]["remaining"] == 4
    limits.cleanup()
    assert limits.snapshot() == {}
