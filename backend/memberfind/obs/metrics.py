"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


REQUEST_COUNTER = Counter(
	"memberfind_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"memberfind_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

AUTOCOMPLETE_QUERIES = Counter(
	"memberfind_autocomplete_queries_total",
	"Username autocomplete lookups resolved",
	["scope", "outcome"],
)

AUTOCOMPLETE_LATENCY = Histogram(
	"memberfind_autocomplete_latency_seconds",
	"Username autocomplete latency in seconds",
	["scope"],
	buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

AUTOCOMPLETE_RESULTS = Histogram(
	"memberfind_autocomplete_results",
	"Members returned per lookup, split by retrieval phase",
	["phase"],
	buckets=(0, 1, 2, 3, 4, 5),
)


def observe_request(route: str, method: str, status: int, latency_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(latency_seconds)


def inc_autocomplete(scope: str, outcome: str) -> None:
	AUTOCOMPLETE_QUERIES.labels(scope=scope, outcome=outcome).inc()


def observe_autocomplete_latency(scope: str, latency_seconds: float) -> None:
	AUTOCOMPLETE_LATENCY.labels(scope=scope).observe(latency_seconds)


def observe_phase_results(phase: str, count: int) -> None:
	AUTOCOMPLETE_RESULTS.labels(phase=phase).observe(count)
