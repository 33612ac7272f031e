"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


REQUEST_COUNTER = Counter(
	"pinpoint_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"pinpoint_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

BIDS_CREATED = Counter(
	"pinpoint_bids_created_total",
	"Bids accepted into the pending state",
)

BID_REJECTS = Counter(
	"pinpoint_bid_rejects_total",
	"Bid operations refused by the lifecycle engine",
	["operation", "reason"],
)

BID_DECISIONS = Counter(
	"pinpoint_bid_decisions_total",
	"Owner decisions recorded on bids",
	["status"],
)

BID_RATE_LIMITED = Counter(
	"pinpoint_bid_rate_limited_total",
	"Bid creations refused by the rate limiter",
)

PLACE_WRITES = Counter(
	"pinpoint_place_writes_total",
	"Owner writes on locations and routes",
	["kind", "action"],
)

CLEANUP_DELETED = Counter(
	"pinpoint_cleanup_deleted_total",
	"Records removed by cleanup jobs",
	["job", "kind"],
)

BACKGROUND_RUNS = Counter(
	"pinpoint_background_runs_total",
	"Background job executions",
	["name", "result"],
)

BACKGROUND_DURATION = Histogram(
	"pinpoint_background_duration_seconds",
	"Background job duration in seconds",
	["name"],
	buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)


def observe_request(route: str, method: str, status: int, seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(seconds)


def inc_bid_created() -> None:
	BIDS_CREATED.inc()


def inc_bid_reject(operation: str, reason: str) -> None:
	BID_REJECTS.labels(operation=operation, reason=reason).inc()


def inc_bid_decision(status: str) -> None:
	BID_DECISIONS.labels(status=status).inc()


def inc_bid_rate_limited() -> None:
	BID_RATE_LIMITED.inc()


def inc_place_write(kind: str, action: str) -> None:
	PLACE_WRITES.labels(kind=kind, action=action).inc()


def inc_cleanup_deleted(job: str, kind: str, count: int) -> None:
	if count > 0:
		CLEANUP_DELETED.labels(job=job, kind=kind).inc(count)


def record_job_run(name: str, *, result: str, duration_seconds: float | None = None) -> None:
	BACKGROUND_RUNS.labels(name=name, result=result).inc()
	if duration_seconds is not None:
		BACKGROUND_DURATION.labels(name=name).observe(duration_seconds)
