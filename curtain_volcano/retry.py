"""Bounded retry bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RetryBudget:
    """Count attempts at an operation that may never succeed.

    ``attempt()`` is called before each try. It returns ``True`` while the
    budget allows another try and ``False`` once ``max_attempts`` tries went
    unanswered, at which point the budget is tripped and stays tripped until
    ``succeed()`` or ``reset()``.

    Parameters
    ----------
    max_attempts : int
        Number of tries allowed before tripping.
    attempts : int
        Tries made since the last success.
    tripped : bool
        Whether the budget is exhausted.
    """

    max_attempts: int = 3
    attempts: int = 0
    tripped: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")

    def attempt(self) -> bool:
        """Record one try; return whether it may proceed."""
        if self.tripped:
            return False
        if self.attempts >= self.max_attempts:
            self.tripped = True
            return False
        self.attempts += 1
        return True

    def succeed(self) -> None:
        """The operation succeeded: forget earlier attempts."""
        self.attempts = 0
        self.tripped = False

    def reset(self) -> None:
        """Alias of :meth:`succeed` for explicit recovery paths."""
        self.succeed()

    @property
    def remaining(self) -> int:
        return 0 if self.tripped else max(self.max_attempts - self.attempts, 0)
