"""Prometheus metrics for the groups backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Summary

REQUEST_COUNTER = Counter(
	"groups_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"groups_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

GROUP_TRANSITIONS = Counter(
	"groups_transitions_total",
	"Group membership transitions by outcome",
	["transition", "result"],
)

GROUP_TRANSITION_LATENCY = Histogram(
	"groups_transition_duration_seconds",
	"Duration of a transition including its transaction",
	["transition"],
	buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

GROUP_NOTIFICATIONS = Counter(
	"groups_notifications_total",
	"Notifications recorded alongside transitions",
	["type"],
)

POSTGRES_UP = Gauge("groups_postgres_up", "Postgres availability (1=up,0=down)")
POSTGRES_LATENCY = Summary("groups_postgres_latency_seconds", "Postgres ping latency (seconds)")


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def record_transition(transition: str, *, result: str, duration_seconds: float | None = None) -> None:
	GROUP_TRANSITIONS.labels(transition=transition, result=result).inc()
	if duration_seconds is not None:
		GROUP_TRANSITION_LATENCY.labels(transition=transition).observe(duration_seconds)


def notification_recorded(type_: str) -> None:
	GROUP_NOTIFICATIONS.labels(type=type_).inc()


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)
