"""Throughput and ETA estimation over a moving window of completed files."""

import time
from collections import deque
from typing import Callable, Deque, Optional, Sequence, Tuple


class ThroughputEstimator:
    """
    Moving-window throughput estimate for one run.

    The rate is computed over the last ``window`` completions as bytes
    finished divided by the wall time they took, so it follows changes in
    file size and also stays correct when files overlap in a thread pool.
    """

    def __init__(
        self,
        total_files: int,
        file_sizes: Optional[Sequence[int]] = None,
        window: int = 5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.total_files = total_files
        self.file_sizes = list(file_sizes or [])
        self._clock = clock
        self._start = clock()
        self._anchor = self._start
        self._samples: Deque[Tuple[float, int]] = deque(maxlen=max(1, window))
        self.completed = 0
        self.bytes_done = 0

    @property
    def elapsed_seconds(self) -> float:
        return max(0.0, self._clock() - self._start)

    def record(self, size_bytes: int, finished_at: Optional[float] = None) -> None:
        """Register one finished file (successful or not)."""
        timestamp = self._clock() if finished_at is None else finished_at
        if len(self._samples) == self._samples.maxlen:
            self._anchor = self._samples[0][0]
        self._samples.append((timestamp, max(0, size_bytes)))
        self.completed += 1
        self.bytes_done += max(0, size_bytes)

    def _window_span(self) -> float:
        if not self._samples:
            return 0.0
        return max(0.0, self._samples[-1][0] - self._anchor)

    def bytes_per_second(self) -> float:
        span = self._window_span()
        if span <= 0:
            return 0.0
        return sum(size for _, size in self._samples) / span

    def seconds_per_file(self) -> float:
        if not self._samples:
            return 0.0
        return self._window_span() / len(self._samples)

    def eta_seconds(self, completed: Optional[int] = None) -> float:
        """
        Estimated seconds until the run finishes; never negative.

        Uses remaining known source bytes over the current byte rate, and
        falls back to remaining files times the mean per-file time.
        """
        done = self.completed if completed is None else completed
        remaining_files = max(0, self.total_files - done)
        if remaining_files == 0:
            return 0.0

        rate = self.bytes_per_second()
        remaining_bytes = sum(self.file_sizes[done:]) if self.file_sizes else 0
        if rate > 0 and remaining_bytes > 0:
            return max(0.0, remaining_bytes / rate)
        return max(0.0, remaining_files * self.seconds_per_file())
