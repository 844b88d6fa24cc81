"""Fixed-window request quotas keyed by ``operation_class:caller_id``.

The gate is the only mutable state shared between concurrent generations,
so every check-and-increment happens under one lock.
"""
from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import Mapping, Optional

from .config import ConfigError, RateLimitRule
from .polling import Clock, SystemClock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: Optional[int] = None
    message: str = ""


@dataclass
class _Window:
    count: int
    reset_at: float


class AdmissionGate:
    def __init__(self, classes: Mapping[str, RateLimitRule], clock: Optional[Clock] = None):
        self._classes = dict(classes)
        self._clock = clock or SystemClock()
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        # Expired windows are swept from inside admit at most once per this interval.
        self._sweep_interval = min((r.window_sec for r in self._classes.values()), default=60.0)
        self._next_sweep = self._clock.monotonic() + self._sweep_interval

    def rule(self, operation_class: str) -> RateLimitRule:
        try:
            return self._classes[operation_class]
        except KeyError:
            raise ConfigError(
                f"Unknown operation class: '{operation_class}'. Available classes: {sorted(self._classes)}"
            ) from None

    def admit(self, caller_id: str, operation_class: str) -> AdmissionDecision:
        rule = self.rule(operation_class)
        key = f"{operation_class}:{caller_id}"

        with self._lock:
            now = self._clock.monotonic()
            if now >= self._next_sweep:
                self._drop_expired(now)
                self._next_sweep = now + self._sweep_interval
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                window = _Window(count=1, reset_at=now + rule.window_sec)
                self._windows[key] = window
                return AdmissionDecision(
                    allowed=True,
                    limit=rule.max_requests,
                    remaining=rule.max_requests - 1,
                    reset_at=window.reset_at,
                )

            window.count += 1
            if window.count > rule.max_requests:
                retry_after = max(1, math.ceil(window.reset_at - now))
                logger.info(f"Admission denied for {key}; retry after {retry_after}s")
                return AdmissionDecision(
                    allowed=False,
                    limit=rule.max_requests,
                    remaining=0,
                    reset_at=window.reset_at,
                    retry_after_seconds=retry_after,
                    message=rule.message,
                )
            return AdmissionDecision(
                allowed=True,
                limit=rule.max_requests,
                remaining=rule.max_requests - window.count,
                reset_at=window.reset_at,
            )

    def prune(self) -> int:
        """Drop expired windows; returns how many were removed."""
        with self._lock:
            return self._drop_expired(self._clock.monotonic())

    def __len__(self) -> int:
        return len(self._windows)

    def _drop_expired(self, now: float) -> int:
        expired = [k for k, w in self._windows.items() if w.reset_at <= now]
        for k in expired:
            del self._windows[k]
        if expired:
            logger.debug(f"Dropped {len(expired)} expired admission windows")
        return len(expired)
