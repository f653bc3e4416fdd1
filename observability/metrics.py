"""In-process counters and gauges for job and agent activity."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class _Metric:
    name: str
    _value: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def snapshot(self) -> float:
        with self._lock:
            return float(self._value)

    def reset(self) -> None:
        with self._lock:
            self._value = 0.0


class Counter(_Metric):
    """Monotonically increasing counter."""

    def inc(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("Counter can only increase")
        if amount == 0:
            return
        with self._lock:
            self._value += amount


class Gauge(_Metric):
    """Gauge supporting absolute and relative updates."""

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def add(self, amount: float) -> None:
        if amount == 0:
            return
        with self._lock:
            self._value += amount


class MetricsRegistry:
    """Thread-safe registry keyed by metric name."""

    def __init__(self) -> None:
        self._metrics: Dict[str, _Metric] = {}
        self._lock = threading.Lock()

    def _get_or_create(self, name: str, kind: type) -> _Metric:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is not None:
                if not isinstance(metric, kind):
                    raise TypeError(f"Metric {name!r} is already registered as {type(metric).__name__}")
                return metric
            metric = kind(name=name)
            self._metrics[name] = metric
            return metric

    def counter(self, name: str) -> Counter:
        return self._get_or_create(name, Counter)  # type: ignore[return-value]

    def gauge(self, name: str) -> Gauge:
        return self._get_or_create(name, Gauge)  # type: ignore[return-value]

    def get(self, name: str) -> Optional[_Metric]:
        with self._lock:
            return self._metrics.get(name)

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            metrics = list(self._metrics.values())
        return {metric.name: metric.snapshot() for metric in metrics}

    def reset(self) -> None:
        with self._lock:
            metrics = list(self._metrics.values())
        for metric in metrics:
            metric.reset()


_DEFAULT_REGISTRY = MetricsRegistry()


def get_registry() -> MetricsRegistry:
    return _DEFAULT_REGISTRY


__all__ = [
    "Counter",
    "Gauge",
    "MetricsRegistry",
    "get_registry",
]
