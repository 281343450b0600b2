"""
Sample History

Bounded, time-ordered per-signal buffers fed from the live snapshot.
Recording skips sub-threshold jitter so the buffers span a useful
observation window, but forces a fresh point after a quiet period so the
time axis never stalls.
"""

import math
from collections import deque
from dataclasses import asdict, dataclass

from .settings import SignalHistorySettings


@dataclass(frozen=True)
class Sample:
    """A single recorded value."""

    timestamp: float  # Unix seconds
    value: float


class HistoryBuffer:
    """Recent samples of one signal, oldest first."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.samples: deque[Sample] = deque()

    def __len__(self) -> int:
        return len(self.samples)

    def __iter__(self):
        return iter(self.samples)

    def __getitem__(self, index: int) -> Sample:
        return self.samples[index]

    @property
    def latest(self) -> Sample | None:
        return self.samples[-1] if self.samples else None

    def append(self, sample: Sample):
        """Append a sample and evict the oldest ones beyond capacity."""
        if self.samples and sample.timestamp < self.samples[-1].timestamp:
            raise ValueError(
                f"Sample at {sample.timestamp} is older than last sample at {self.samples[-1].timestamp}"
            )
        self.samples.append(sample)
        while len(self.samples) > self.capacity:
            self.samples.popleft()

    def recent(self, count: int) -> list[Sample]:
        """Last `count` samples, oldest first."""
        if count <= 0:
            return []
        return list(self.samples)[-count:]

    def values(self) -> list[float]:
        return [s.value for s in self.samples]

    def timestamps(self) -> list[float]:
        return [s.timestamp for s in self.samples]

    def as_dicts(self) -> list[dict]:
        return [asdict(s) for s in self.samples]

    def clear(self):
        self.samples.clear()


def record(
    buffer: HistoryBuffer,
    value: float,
    now: float,
    min_delta: float,
    stale_after: float,
    capacity: int,
) -> bool:
    """Record a value if it carries new information.

    Observations timestamped before the last sample are dropped.

    Args:
        buffer: Buffer to append to
        value: Observed value; non-finite values are ignored
        now: Observation time in Unix seconds
        min_delta: Smallest change worth recording
        stale_after: Seconds after which an unchanged value is recorded anyway
        capacity: Maximum buffer length after recording

    Returns:
        True if a sample was appended
    """
    if value is None or not math.isfinite(value):
        return False

    last = buffer.latest
    if last is not None:
        if now < last.timestamp:
            return False
        changed = abs(value - last.value) >= min_delta
        stale = now - last.timestamp > stale_after
        if not (changed or stale):
            return False

    buffer.capacity = capacity
    buffer.append(Sample(timestamp=now, value=value))
    return True


class SignalHistory:
    """History buffer bound to its recording settings."""

    def __init__(self, key: str, settings: SignalHistorySettings):
        self.key = key
        self.settings = settings
        self.buffer = HistoryBuffer(settings.capacity)

    def record(self, value: float, now: float) -> bool:
        return record(
            self.buffer,
            value,
            now,
            min_delta=self.settings.min_delta,
            stale_after=self.settings.stale_after,
            capacity=self.settings.capacity,
        )
