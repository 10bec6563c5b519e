"""Tests for UserService profile tracking and counts."""
from nightpass.services.users import DAY_MS, UserService


def test_track_creates_then_refreshes(store, clock):
    users = UserService(store, clock=clock)
    first = users.track("42", "Alice")
    clock.advance(1000)
    second = users.track("42")

    assert second.first_seen == first.first_seen
    assert second.last_seen == first.last_seen + 1000
    assert second.display_name == "Alice"


def test_counts_active_window(store, clock):
    users = UserService(store, clock=clock)
    users.track("old")
    clock.advance(31 * DAY_MS)
    users.track("new")
    assert users.counts(active_days=30) == {"user_count": 2, "active_users": 1}
