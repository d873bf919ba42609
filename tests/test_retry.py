from __future__ import annotations

import pytest

from curtain_volcano.retry import RetryBudget


def test_budget_allows_max_attempts_then_trips() -> None:
    budget = RetryBudget(max_attempts=3)

    assert [budget.attempt() for _ in range(3)] == [True, True, True]
    assert budget.remaining == 0
    assert not budget.tripped

    assert budget.attempt() is False
    assert budget.tripped
    assert budget.attempt() is False


def test_success_resets_the_budget() -> None:
    budget = RetryBudget(max_attempts=2)
    budget.attempt()
    budget.attempt()
    budget.attempt()
    assert budget.tripped

    budget.succeed()

    assert (budget.attempts, budget.tripped, budget.remaining) == (0, False, 2)
    assert budget.attempt() is True


def test_reset_is_an_explicit_recovery() -> None:
    budget = RetryBudget(max_attempts=1, attempts=1, tripped=True)

    budget.reset()

    assert budget.attempt() is True


def test_max_attempts_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RetryBudget(max_attempts=0)
