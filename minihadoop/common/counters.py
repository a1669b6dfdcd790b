"""
Run-scoped named counters
One Counters instance belongs to one job run and is passed to every task
that reports into it.
"""

import threading
from typing import Dict, Iterator

MAP_INPUT_RECORDS = "MAP_INPUT_RECORDS"
MAP_OUTPUT_RECORDS = "MAP_OUTPUT_RECORDS"
COMBINE_INPUT_RECORDS = "COMBINE_INPUT_RECORDS"
COMBINE_OUTPUT_RECORDS = "COMBINE_OUTPUT_RECORDS"
REDUCE_INPUT_GROUPS = "REDUCE_INPUT_GROUPS"
REDUCE_INPUT_RECORDS = "REDUCE_INPUT_RECORDS"
REDUCE_OUTPUT_RECORDS = "REDUCE_OUTPUT_RECORDS"


class Counters:
    """Thread-safe mapping from counter name to a non-negative count"""

    def __init__(self):
        self._values: Dict[str, int] = {}
        self._lock = threading.Lock()

    def increment(self, name: str, delta: int = 1) -> int:
        """Atomically add delta to a counter and return the new value"""
        if delta < 0:
            raise ValueError(f"Counter delta must be non-negative, got {delta}")
        with self._lock:
            value = self._values.get(name, 0) + delta
            self._values[name] = value
            return value

    def get(self, name: str) -> int:
        with self._lock:
            return self._values.get(name, 0)

    def snapshot(self) -> Dict[str, int]:
        """Copy of all counters seen so far"""
        with self._lock:
            return dict(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def __len__(self):
        with self._lock:
            return len(self._values)

    def __repr__(self):
        return f"Counters({self.snapshot()!r})"
