"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"ember_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"ember_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

ROOMS_CREATED = Counter(
	"ember_rooms_created_total",
	"Rooms created",
	["play_mode"],
)

ROOM_CODE_COLLISIONS = Counter(
	"ember_room_code_collisions_total",
	"Generated room codes rejected because an active room already holds them",
)

ROOMS_JOIN = Counter(
	"ember_rooms_join_total",
	"Room join attempts by outcome",
	["result"],
)

ROOMS_CLOSED = Counter(
	"ember_rooms_closed_total",
	"Rooms closed by their host",
)

ROOMS_EXPIRED = Counter(
	"ember_rooms_expired_total",
	"Rooms deactivated by the expiry sweep",
)

ROOM_UPDATES = Counter(
	"ember_room_updates_total",
	"Room field updates",
	["field"],
)

QUESTIONS_SUBMITTED = Counter(
	"ember_questions_submitted_total",
	"Questions persisted for rooms",
	["spicy_level"],
)

QUESTION_GENERATIONS = Counter(
	"ember_question_generations_total",
	"Question generator calls by outcome",
	["result"],
)

ANSWERS = Counter(
	"ember_answers_total",
	"Answers recorded",
	["kind"],
)

READY_TOGGLES = Counter(
	"ember_ready_toggles_total",
	"Player ready toggles",
	["ready"],
)

SYNC_POLLS = Counter(
	"ember_sync_polls_total",
	"Sync feed polls",
	["mode"],
)

SYNC_EVENTS_RETURNED = Histogram(
	"ember_sync_events_returned",
	"Events returned per sync poll",
	buckets=(0, 1, 2, 5, 10, 25, 50, 100),
)

POSTGRES_UP = Gauge(
	"ember_postgres_up",
	"Postgres availability as seen by the readiness probe",
)

REDIS_UP = Gauge(
	"ember_redis_up",
	"Redis availability as seen by the readiness probe",
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_room_created(play_mode: str) -> None:
	ROOMS_CREATED.labels(play_mode=play_mode).inc()


def inc_code_collision() -> None:
	ROOM_CODE_COLLISIONS.inc()


def inc_room_join(result: str) -> None:
	ROOMS_JOIN.labels(result=result).inc()


def inc_room_closed() -> None:
	ROOMS_CLOSED.inc()


def inc_rooms_expired(count: int) -> None:
	if count > 0:
		ROOMS_EXPIRED.inc(count)


def inc_room_update(field: str) -> None:
	ROOM_UPDATES.labels(field=field).inc()


def inc_question_submitted(spicy_level: str) -> None:
	QUESTIONS_SUBMITTED.labels(spicy_level=spicy_level).inc()


def inc_question_generation(result: str) -> None:
	QUESTION_GENERATIONS.labels(result=result).inc()


def inc_answer(kind: str) -> None:
	ANSWERS.labels(kind=kind).inc()


def inc_ready_toggle(is_ready: bool) -> None:
	READY_TOGGLES.labels(ready="true" if is_ready else "false").inc()


def observe_sync(mode: str, returned: int) -> None:
	SYNC_POLLS.labels(mode=mode).inc()
	SYNC_EVENTS_RETURNED.observe(returned)


def mark_postgres(ok: bool) -> None:
	POSTGRES_UP.set(1 if ok else 0)


def mark_redis(ok: bool) -> None:
	REDIS_UP.set(1 if ok else 0)
