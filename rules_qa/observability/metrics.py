from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Iterable, Tuple

from rules_qa.settings import settings


_ASK_LATENCY_BUCKETS: Tuple[float, ...] = (100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0)
_ANSWER_MODES: Tuple[str, ...] = ("generated", "fallback", "no-rules")


@dataclass
class HistogramState:
    buckets: Dict[float, int]
    inf_count: int
    count: int
    total: float


def _empty_state(boundaries: Tuple[float, ...]) -> HistogramState:
    return HistogramState(
        buckets={boundary: 0 for boundary in boundaries},
        inf_count=0,
        count=0,
        total=0.0,
    )


class Histogram:
    def __init__(self, bucket_boundaries: Iterable[float]) -> None:
        self._boundaries = tuple(sorted(float(boundary) for boundary in bucket_boundaries))
        self._state = _empty_state(self._boundaries)
        self._lock = Lock()

    @property
    def boundaries(self) -> Tuple[float, ...]:
        return self._boundaries

    def observe(self, value: float) -> None:
        with self._lock:
            state = self._state
            state.count += 1
            state.total += value
            for boundary in self._boundaries:
                if value <= boundary:
                    state.buckets[boundary] += 1
                    break
            else:
                state.inf_count += 1

    def snapshot(self) -> HistogramState:
        with self._lock:
            return HistogramState(
                buckets=dict(self._state.buckets),
                inf_count=self._state.inf_count,
                count=self._state.count,
                total=self._state.total,
            )

    def reset(self) -> None:
        with self._lock:
            self._state = _empty_state(self._boundaries)


class MetricsRegistry:
    def __init__(self) -> None:
        self._answer_counters: Dict[str, int] = defaultdict(int)
        self._search_total = 0
        self._lock = Lock()
        self._latency_histogram = Histogram(_ASK_LATENCY_BUCKETS)

    def increment_answer(self, mode: str) -> None:
        if not settings.metrics_enabled:
            return
        with self._lock:
            self._answer_counters[mode] += 1

    def increment_search(self) -> None:
        if not settings.metrics_enabled:
            return
        with self._lock:
            self._search_total += 1

    def observe_latency(self, latency_ms: float) -> None:
        if not settings.metrics_enabled:
            return
        self._latency_histogram.observe(latency_ms)

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            counters = dict(self._answer_counters)
            search_total = self._search_total
        return {
            "answers": counters,
            "search_total": search_total,
            "histogram": self._latency_histogram.snapshot(),
        }

    def reset(self) -> None:
        with self._lock:
            self._answer_counters.clear()
            self._search_total = 0
        self._latency_histogram.reset()


_registry: MetricsRegistry | None = None


def get_metrics_registry() -> MetricsRegistry:
    global _registry
    if _registry is None:
        _registry = MetricsRegistry()
    return _registry


def format_prometheus_metrics() -> str:
    if not settings.metrics_enabled:
        return ""

    snapshot = get_metrics_registry().snapshot()
    lines = []

    lines.append("# HELP rules_answers_total Answers produced by mode")
    lines.append("# TYPE rules_answers_total counter")
    answers: Dict[str, int] = snapshot["answers"]
    for mode in _ANSWER_MODES:
        lines.append(f'rules_answers_total{{mode="{mode}"}} {answers.get(mode, 0)}')

    lines.append("# HELP rules_search_requests_total Plain rule searches served")
    lines.append("# TYPE rules_search_requests_total counter")
    lines.append(f"rules_search_requests_total {snapshot['search_total']}")

    lines.append("# HELP ask_request_latency_ms Latency of /api/agent/ask in milliseconds")
    lines.append("# TYPE ask_request_latency_ms histogram")
    histogram: HistogramState = snapshot["histogram"]
    cumulative = 0
    for boundary in _ASK_LATENCY_BUCKETS:
        cumulative += histogram.buckets.get(boundary, 0)
        lines.append(f'ask_request_latency_ms_bucket{{le="{int(boundary)}"}} {cumulative}')
    lines.append('ask_request_latency_ms_bucket{le="+Inf"} ' + str(cumulative + histogram.inf_count))
    lines.append(f"ask_request_latency_ms_count {histogram.count}")
    lines.append(f"ask_request_latency_ms_sum {round(histogram.total, 6)}")

    return "\n".join(lines) + "\n"
