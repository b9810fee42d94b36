"""
File-backed scheduler for continuation invocations
"""
import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class FileScheduler:
    """Keeps pending continuations in a small JSON file"""

    def __init__(self, schedule_file: str, clock: Callable[[], float] = time.time):
        """
        Initialize scheduler

        Args:
            schedule_file: Path of the schedule file
            clock: Returns the current time in epoch seconds
        """
        self.schedule_file = Path(schedule_file)
        self.clock = clock

    def pending(self) -> List[Dict]:
        """Scheduled continuations, earliest first"""
        if not self.schedule_file.exists():
            return []
        with open(self.schedule_file, 'r', encoding='utf-8') as f:
            entries = json.load(f)
        return sorted(entries, key=lambda entry: entry['dueTimestamp'])

    def schedule_after(self, entry_point: str, delay_seconds: int):
        """Add a continuation due `delay_seconds` from now"""
        due = self.clock() + delay_seconds
        entries = self.pending()
        entries.append({
            'entryPoint': entry_point,
            'dueTimestamp': due,
            'dueAt': datetime.fromtimestamp(due).isoformat(),
        })
        self._write(entries)
        logger.info(f"Scheduled {entry_point} in {delay_seconds}s")

    def cancel_all(self):
        """Remove every pending continuation"""
        if self.schedule_file.exists():
            self.schedule_file.unlink()
            logger.debug("Cleared scheduled continuations")

    def next_due(self) -> Optional[float]:
        entries = self.pending()
        return entries[0]['dueTimestamp'] if entries else None

    def _write(self, entries: List[Dict]):
        self.schedule_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.schedule_file, 'w', encoding='utf-8') as f:
            json.dump(entries, f, indent=2)
