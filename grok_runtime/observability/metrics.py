"""Process-wide counters exposed by ``GET /v1/metrics``."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict


@dataclass(slots=True)
class RuntimeMetrics:
    model_calls_total: int = 0
    model_retries_total: int = 0
    model_failures_total: int = 0
    tool_calls_total: Dict[str, int] = field(default_factory=dict)
    tool_failures_total: int = 0
    streams_cancelled_total: int = 0
    confirmations_pending: int = 0

    def increment_tool_call(self, tool_name: str) -> None:
        self.tool_calls_total[tool_name] = self.tool_calls_total.get(tool_name, 0) + 1

    def snapshot(self) -> dict:
        return asdict(self)


_runtime_metrics = RuntimeMetrics()


def get_runtime_metrics() -> RuntimeMetrics:
    return _runtime_metrics
