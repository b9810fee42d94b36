"""
Per-invocation time budget
"""
import time
from datetime import datetime
from typing import Callable, Optional


class TimeBudget:
    """Tracks the deadline of the current invocation"""

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Initialize time budget

        Args:
            clock: Returns the current time in epoch seconds
        """
        self.clock = clock
        self.deadline: Optional[float] = None

    def start(self, duration: float):
        """Fix the deadline `duration` seconds from now"""
        self.deadline = self.clock() + duration

    def expired(self) -> bool:
        """Return True once the deadline has passed (or was never started)"""
        if self.deadline is None:
            return True
        return self.clock() >= self.deadline

    def deadline_iso(self) -> str:
        """Deadline as an ISO timestamp for the job document"""
        if self.deadline is None:
            return ''
        return datetime.fromtimestamp(self.deadline).isoformat()
