"""
Install sentinel for the self-updater.

The sentinel is the single piece of shared state that keeps install attempts
from overlapping. It is only ever changed through ``compare_and_set`` (claim
the install) and ``store`` (release it).

State transitions:
- IDLE -> INSTALLING (compare_and_set, by the one caller that wins)
- INSTALLING -> INSTALLED (pipeline succeeded, terminal)
- INSTALLING -> IDLE (no update found, or the pipeline failed)
"""

from __future__ import annotations

import threading
from enum import IntEnum


class InstallState(IntEnum):
    """States of the install sentinel."""

    IDLE = 0
    INSTALLING = 1
    INSTALLED = 2


class InstallSentinel:
    """
    Atomically updated tri-state install guard.

    The internal lock only makes the read-compare-write indivisible; it is
    never held while an install runs.
    """

    def __init__(self, state: InstallState = InstallState.IDLE) -> None:
        self._state = state
        self._lock = threading.Lock()

    @property
    def state(self) -> InstallState:
        """Current state."""
        return self._state

    def compare_and_set(self, expected: InstallState, new: InstallState) -> bool:
        """
        Set the state to ``new`` only if it currently equals ``expected``.

        Returns:
            True if the swap happened, False if another state was found.
        """
        with self._lock:
            if self._state != expected:
                return False
            self._state = new
            return True

    def store(self, state: InstallState) -> None:
        """Unconditionally set the state."""
        with self._lock:
            self._state = state
