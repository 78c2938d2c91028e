"""
Observability hooks for availability checks.

The checker reports outcome counts and fetch latency through a
MetricsRecorder injected at construction. InMemoryMetrics keeps counters
and a fixed-bucket latency histogram in process; NullMetrics discards
everything.
"""

from bisect import bisect_left
from typing import Optional, Protocol, runtime_checkable

from .enums import AvailabilityVerdict


# Upper bounds in milliseconds; the last bucket is unbounded
LATENCY_BUCKETS_MS: tuple[float, ...] = (
    250.0, 500.0, 1000.0, 2000.0, 4000.0, 8000.0, 12000.0, float("inf"),
)


@runtime_checkable
class MetricsRecorder(Protocol):
    """Protocol for check observability hooks."""

    def record_verdict(self, verdict: AvailabilityVerdict, platform: Optional[str]) -> None:
        """Count one check outcome."""
        ...

    def observe_fetch_latency(self, duration_ms: float, success: bool) -> None:
        """Record how long a fetch took."""
        ...


class NullMetrics:
    """Recorder that drops every observation."""

    def record_verdict(self, verdict: AvailabilityVerdict, platform: Optional[str]) -> None:
        pass

    def observe_fetch_latency(self, duration_ms: float, success: bool) -> None:
        pass


class InMemoryMetrics:
    """In-process counters and latency histogram."""

    def __init__(self, buckets_ms: tuple[float, ...] = LATENCY_BUCKETS_MS) -> None:
        if not buckets_ms or buckets_ms[-1] != float("inf"):
            raise ValueError("Latency buckets must end with an unbounded bucket")
        self._buckets = buckets_ms
        self._verdicts: dict[tuple[str, str], int] = {}
        self._histogram: list[int] = [0] * len(buckets_ms)
        self._fetch_count = 0
        self._fetch_failures = 0
        self._latency_sum_ms = 0.0

    def record_verdict(self, verdict: AvailabilityVerdict, platform: Optional[str]) -> None:
        key = (verdict.value, platform or "none")
        self._verdicts[key] = self._verdicts.get(key, 0) + 1

    def observe_fetch_latency(self, duration_ms: float, success: bool) -> None:
        duration_ms = max(0.0, duration_ms)
        self._histogram[bisect_left(self._buckets, duration_ms)] += 1
        self._fetch_count += 1
        self._latency_sum_ms += duration_ms
        if not success:
            self._fetch_failures += 1

    def verdict_count(
        self,
        verdict: AvailabilityVerdict,
        platform: Optional[str] = None,
    ) -> int:
        """
        Number of recorded outcomes.

        Args:
            verdict: Verdict to count
            platform: Restrict to a platform; None counts all platforms
        """
        return sum(
            count
            for (value, name), count in self._verdicts.items()
            if value == verdict.value and (platform is None or name == platform)
        )

    @property
    def fetch_count(self) -> int:
        return self._fetch_count

    @property
    def fetch_failures(self) -> int:
        return self._fetch_failures

    def snapshot(self) -> dict:
        """Export all metrics as a plain dictionary."""
        return {
            "verdicts": {
                f"{verdict}:{platform}": count
                for (verdict, platform), count in sorted(self._verdicts.items())
            },
            "fetch": {
                "count": self._fetch_count,
                "failures": self._fetch_failures,
                "latency_sum_ms": self._latency_sum_ms,
                "buckets": [
                    {"le": "+Inf" if bound == float("inf") else bound, "count": count}
                    for bound, count in zip(self._buckets, self._histogram)
                ],
            },
        }
