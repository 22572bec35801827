from __future__ import annotations

import datetime as dt

import pytest

from timereporting.activity import ActivityContext
from timereporting.config import Settings


class FakeClock:
    def __init__(self, start: dt.datetime) -> None:
        self.now = start

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += dt.timedelta(minutes=minutes)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(dt.datetime(2024, 3, 4, 9, 0, tzinfo=dt.timezone.utc))


@pytest.fixture()
def context(clock: FakeClock) -> ActivityContext:
    return ActivityContext(Settings(suggestion_idle_minutes=30), clock=clock)


def test_no_proposal_without_history(context: ActivityContext):
    assert not context.has_suggestion_context()
    assert context.propose() is None
    assert context.minutes_since_last_entry() is None


def test_proposal_uses_last_project_and_session_length(context: ActivityContext, clock: FakeClock):
    context.record_entry("INTERNAL", "Development", "entry-1")
    clock.advance(100)
    assert context.minutes_since_last_entry() == 100

    proposal = context.propose()
    assert proposal is not None
    assert proposal.project_code == "INTERNAL"
    assert proposal.task == "Development"
    assert proposal.standard_hours == 1.75
    assert proposal.start_date == dt.date(2024, 3, 4)
    assert proposal.tags == []

    # Only one proposal per work session
    assert context.propose() is None


@pytest.mark.parametrize(
    ("minutes", "expected"),
    [(0, 0.25), (5, 0.25), (44, 0.75), (600, 8.0)],
)
def test_suggested_hours_are_rounded_and_clamped(context: ActivityContext, clock: FakeClock, minutes, expected):
    context.record_entry("INTERNAL", "Development", "entry-1")
    clock.advance(minutes)
    assert context.suggested_hours() == expected


def test_idle_gap_starts_new_session(context: ActivityContext, clock: FakeClock):
    context.record_entry("CLIENT-A", "Bug Fixing", "entry-1")
    assert context.propose() is not None

    clock.advance(45)
    context.record_activity()
    assert context.session_minutes() == 0
    assert context.idle_minutes() == 0
    assert context.propose() is not None


def test_short_gap_keeps_session(context: ActivityContext, clock: FakeClock):
    context.record_entry("CLIENT-A", "Bug Fixing", "entry-1")
    clock.advance(10)
    context.record_activity()
    assert context.session_minutes() == 10
    assert context.activity_count == 2
