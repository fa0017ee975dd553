from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from ..core.logging import get_logger
from ..core.metrics import observe_component_execution

logger = get_logger(name=__name__)

DEFAULT_WINDOW = 100


def duration_ms(duration: float | timedelta) -> float:
    """Normalise a duration given in seconds or as a ``timedelta`` to milliseconds."""
    if isinstance(duration, timedelta):
        seconds = duration.total_seconds()
    else:
        seconds = float(duration)
    return max(0.0, seconds * 1000.0)


@dataclass(slots=True)
class ExecutionWindow:
    """Rolling latency window plus lifetime success/error counters for one key."""

    size: int = DEFAULT_WINDOW
    durations_ms: deque[float] = field(init=False)
    success_count: int = 0
    error_count: int = 0
    last_execution: datetime | None = None

    def __post_init__(self) -> None:
        self.durations_ms = deque(maxlen=max(1, self.size))

    @property
    def total(self) -> int:
        return self.success_count + self.error_count

    def record(self, elapsed_ms: float, success: bool) -> None:
        self.durations_ms.append(elapsed_ms)
        if success:
            self.success_count += 1
        else:
            self.error_count += 1
        self.last_execution = datetime.now(timezone.utc)

    def clear(self) -> None:
        self.durations_ms.clear()
        self.success_count = 0
        self.error_count = 0
        self.last_execution = None

    def snapshot(self) -> dict[str, Any]:
        durations = list(self.durations_ms)
        total = self.total
        return {
            "total_executions": total,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "success_rate": self.success_count / total if total else 0.0,
            "average_execution_time_ms": sum(durations) / len(durations) if durations else 0.0,
            "min_execution_time_ms": min(durations) if durations else 0.0,
            "max_execution_time_ms": max(durations) if durations else 0.0,
            "window_size": len(durations),
            "last_execution": self.last_execution.isoformat() if self.last_execution else None,
        }


def empty_snapshot() -> dict[str, Any]:
    return ExecutionWindow().snapshot()


class MetricsTracker:
    """Keyed execution outcomes for agents and pipeline stages.

    Every read returns plain dicts built from a snapshot taken under the lock,
    safe to serialise as JSON.
    """

    def __init__(self, window: int = DEFAULT_WINDOW) -> None:
        self._window = max(1, window)
        self._components: dict[str, ExecutionWindow] = {}
        self._lock = threading.Lock()

    @property
    def window(self) -> int:
        return self._window

    def record(self, component: str, duration: float | timedelta, success: bool) -> None:
        elapsed = duration_ms(duration)
        with self._lock:
            entry = self._components.get(component)
            if entry is None:
                entry = ExecutionWindow(size=self._window)
                self._components[component] = entry
            entry.record(elapsed, success)
        observe_component_execution(component=component, latency=elapsed / 1000.0, success=success)

    def metrics(self, component: str) -> dict[str, Any]:
        with self._lock:
            entry = self._components.get(component)
            snapshot = entry.snapshot() if entry is not None else empty_snapshot()
        return {"component": component, **snapshot}

    def all_metrics(self) -> dict[str, Any]:
        with self._lock:
            components = {name: {"component": name, **entry.snapshot()} for name, entry in self._components.items()}
        return {
            "total_components": len(components),
            "total_executions": sum(item["total_executions"] for item in components.values()),
            "components": components,
        }

    def _executed(self) -> list[dict[str, Any]]:
        components = self.all_metrics()["components"].values()
        return [item for item in components if item["total_executions"] > 0]

    def top_performers(self, limit: int = 10) -> list[dict[str, Any]]:
        ranked = sorted(self._executed(), key=lambda item: item["success_rate"], reverse=True)
        return ranked[: max(0, limit)]

    def slowest_components(self, limit: int = 10) -> list[dict[str, Any]]:
        ranked = sorted(self._executed(), key=lambda item: item["average_execution_time_ms"], reverse=True)
        return ranked[: max(0, limit)]

    def components_with_errors(self) -> list[dict[str, Any]]:
        failing = [item for item in self._executed() if item["error_count"] > 0]
        return sorted(failing, key=lambda item: item["error_count"], reverse=True)

    def summary(self) -> dict[str, Any]:
        snapshot = self.all_metrics()
        components = list(snapshot["components"].values())
        # Components that never succeeded (or never ran) stay out of the averages.
        success_rates = [item["success_rate"] for item in components if item["success_rate"] > 0]
        latencies = [item["average_execution_time_ms"] for item in components if item["average_execution_time_ms"] > 0]
        return {
            "total_components": snapshot["total_components"],
            "total_executions": snapshot["total_executions"],
            "average_success_rate": sum(success_rates) / len(success_rates) if success_rates else 0.0,
            "average_execution_time_ms": sum(latencies) / len(latencies) if latencies else 0.0,
        }

    def reset(self, component: str) -> None:
        with self._lock:
            removed = self._components.pop(component, None)
        if removed is not None:
            logger.info("metrics_component_reset", component=component)

    def reset_all(self) -> None:
        with self._lock:
            self._components.clear()
        logger.info("metrics_reset")


__all__ = ["DEFAULT_WINDOW", "ExecutionWindow", "MetricsTracker", "duration_ms", "empty_snapshot"]
