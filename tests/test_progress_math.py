"""Tests for buffer-day progress math."""

from datetime import date

import pytest

from consistency_tracker.domain.progress import (
    GoalSpec,
    calculate_fraction,
    default_buffer_days,
    required_for_full_credit,
)


@pytest.mark.parametrize(
    ("target_days", "expected"),
    [(10, 3), (30, 3), (45, 5), (60, 6), (100, 10), (365, 37)],
)
def test_default_buffer_days(target_days: int, expected: int) -> None:
    assert default_buffer_days(target_days) == expected


def test_buffer_absorbs_missed_days() -> None:
    assert calculate_fraction(27, 30, 3) == 1.0
    assert calculate_fraction(26, 30, 3) == pytest.approx(26 / 27)


def test_fraction_is_clamped() -> None:
    assert calculate_fraction(40, 30, 3) == 1.0
    assert calculate_fraction(0, 30, 3) == 0.0


def test_required_days_never_below_one() -> None:
    assert required_for_full_credit(3, 5) == 1
    assert calculate_fraction(1, 3, 5) == 1.0


def test_goal_spec_derives_buffer() -> None:
    goal = GoalSpec(start_date=date(2026, 1, 1), target_days=60)

    assert goal.buffer_days == 6
    assert not goal.buffer_overridden
    assert goal.required_for_full_credit == 54


def test_goal_spec_rederives_buffer_on_new_target() -> None:
    goal = GoalSpec(start_date=date(2026, 1, 1), target_days=60)

    updated = goal.with_target_days(100)

    assert updated.buffer_days == 10


def test_goal_spec_keeps_explicit_buffer_on_new_target() -> None:
    goal = GoalSpec(start_date=date(2026, 1, 1), target_days=60, buffer_days=2)

    updated = goal.with_target_days(100)

    assert updated.buffer_overridden
    assert updated.buffer_days == 2


def test_goal_spec_rejects_invalid_values() -> None:
    with pytest.raises(ValueError):
        GoalSpec(start_date=date(2026, 1, 1), target_days=0)
    with pytest.raises(ValueError):
        GoalSpec(start_date=date(2026, 1, 1), target_days=30, buffer_days=-1)
