"""
Input-source strategies for the Intcode machine.

The machine asks its input source for a value each time an input
instruction executes. ``QueuedInput`` only looks at the input queue and
reports starvation so the machine can suspend. ``InteractiveProvider``
falls back to a synchronous callback when the queue is empty, the way the
prompting machine asked a human at the terminal.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from .chips import FIFO


class InputUnavailable(RuntimeError):
    """An interactive provider could not supply a value."""


class QueuedInput:
    """Read from the queue only. An empty queue means "suspend"."""

    interactive = False

    def read(self, queue: FIFO) -> int | None:
        return queue.pop()

    def __repr__(self) -> str:
        return "QueuedInput()"


class InteractiveProvider:
    """Read from the queue, then ask ``provider`` for exactly one integer."""

    interactive = True

    def __init__(self, provider: Callable[[], int]):
        self.provider = provider
        self.requests = 0

    def read(self, queue: FIFO) -> int | None:
        value = queue.pop()
        if value is not None:
            return value
        self.requests += 1
        try:
            value = self.provider()
        except (EOFError, ValueError, OSError) as e:
            raise InputUnavailable(f"input provider failed: {e}") from e
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise InputUnavailable(f"input provider returned {value!r}, expected an integer")
        return int(value)

    def __repr__(self) -> str:
        return f"InteractiveProvider({self.provider!r})"


def prompt_provider(prompt: str = "input> ", reader: Callable[[str], str] = input) -> Callable[[], int]:
    """Build a provider that reads one integer per call from the terminal."""

    def ask() -> int:
        return int(reader(prompt).strip())

    return ask
