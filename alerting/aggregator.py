"""Tumbling-window counters for threshold rules.

One bucket per (rule_id, grouping value), e.g. ("ssh_brute_force",
"10.0.0.9").  A bucket counts matching events since its window started.
When the window has elapsed the next event starts a fresh window rather
than trimming old entries. Rule thresholds are tuned against these
tumbling semantics, so this is not a sliding window.

Memory is bounded by a sweeper thread that drops buckets idle for longer
than the retention period.  Each tracker owns its sweeper; ``close()``
stops it.  State is in-memory only and is lost on restart.
"""

import logging
import threading
import time
from typing import Any

from alerting import metrics
from alerting.matcher import lookup, stringify
from alerting.models import AggregationResult
from alerting.rules import AggregationCondition

log = logging.getLogger(__name__)

# Buckets not touched for this long are evicted.  Must exceed the longest
# time_window_seconds of any loaded rule, or live windows get dropped.
DEFAULT_RETENTION_SECONDS = 600
DEFAULT_SWEEP_INTERVAL_SECONDS = 60


class _Bucket:
    __slots__ = ("count", "window_start", "last_seen", "window_seconds")

    def __init__(self, now: float, window_seconds: float):
        self.count = 0
        self.window_start = now
        self.last_seen = now
        self.window_seconds = window_seconds


class AggregationTracker:

    def __init__(self, retention_seconds: float = DEFAULT_RETENTION_SECONDS,
                 sweep_interval_seconds: float | None = DEFAULT_SWEEP_INTERVAL_SECONDS):
        self.retention_seconds = retention_seconds

        # One lock for the whole map: increment, threshold check and reset
        # must be atomic per key, and the sweeper deletes under it too.
        self._buckets: dict[tuple[str, str], _Bucket] = {}
        self._lock = threading.Lock()

        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None
        if sweep_interval_seconds is not None:
            self._sweeper = threading.Thread(
                target=self._sweep_loop,
                args=(sweep_interval_seconds,),
                name="aggregation-sweeper",
                daemon=True,
            )
            self._sweeper.start()

    def track(self, rule_id: str, event: Any,
              condition: AggregationCondition) -> AggregationResult:
        """Count one matching event; report whether the threshold was hit.

        Events with no usable grouping value are not tracked at all.  On
        trigger the bucket resets so the same window cannot fire twice.
        """
        value = stringify(lookup(event, condition.field))
        if not value:
            return AggregationResult(triggered=False, count=0)

        key = (rule_id, value)
        with self._lock:
            now = time.time()
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = _Bucket(now, condition.time_window_seconds)
                self._buckets[key] = bucket
            bucket.window_seconds = condition.time_window_seconds

            if now - bucket.window_start > condition.time_window_seconds:
                bucket.count = 0
                bucket.window_start = now

            bucket.count += 1
            bucket.last_seen = now

            if bucket.count >= condition.count_threshold:
                count = bucket.count
                bucket.count = 0
                bucket.window_start = now
                return AggregationResult(triggered=True, count=count)

            return AggregationResult(triggered=False, count=bucket.count)

    def count(self, rule_id: str, value: str) -> int:
        """Current in-window count for a key, for diagnostics.  Read-only."""
        with self._lock:
            bucket = self._buckets.get((rule_id, value))
            if bucket is None:
                return 0
            if time.time() - bucket.window_start > bucket.window_seconds:
                return 0
            return bucket.count

    def sweep(self, now: float | None = None) -> int:
        """Evict buckets idle longer than the retention period.

        Returns the number of buckets removed.
        """
        with self._lock:
            if now is None:
                now = time.time()
            cutoff = now - self.retention_seconds
            stale = [k for k, b in self._buckets.items() if b.last_seen < cutoff]
            for key in stale:
                del self._buckets[key]
            remaining = len(self._buckets)
        metrics.aggregation_buckets.set(remaining)
        if stale:
            log.debug("Evicted %d idle aggregation buckets (%d active)",
                      len(stale), remaining)
        return len(stale)

    def close(self) -> None:
        """Stop the sweeper thread.  Safe to call more than once."""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None

    def _sweep_loop(self, interval: float) -> None:
        while not self._stop.wait(interval):
            self.sweep()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
