"""Per-session cancellation flag for in-flight responses."""

from __future__ import annotations


class InterruptGate:
    """Cooperative interrupt flag checked between response fragments.

    ``interrupt`` is only called for an explicit client interrupt and
    ``reset`` only when new user input (or config) starts processing.
    """

    def __init__(self) -> None:
        self._interrupted = False

    @property
    def interrupted(self) -> bool:
        return self._interrupted

    def interrupt(self) -> None:
        self._interrupted = True

    def reset(self) -> None:
        self._interrupted = False

    def __call__(self) -> bool:
        return self._interrupted

    def __repr__(self) -> str:
        return f"InterruptGate(interrupted={self._interrupted})"


__all__ = ["InterruptGate"]
