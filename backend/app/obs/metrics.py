"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


REQUEST_COUNTER = Counter(
	"campus_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"campus_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

COMMUNITY_GROUPS_CREATED = Counter(
	"campus_community_groups_created_total",
	"Groups created",
)

COMMUNITY_GROUPS_DELETED = Counter(
	"campus_community_groups_deleted_total",
	"Groups soft-deleted together with their content",
)

COMMUNITY_MEMBERSHIP_TRANSITIONS = Counter(
	"campus_community_membership_transitions_total",
	"Membership state machine transitions",
	["transition"],
)

SOCIAL_GRAPH_TRANSITIONS = Counter(
	"campus_social_graph_transitions_total",
	"Friendship and follow changes",
	["transition"],
)

COMMUNITY_POSTS_CREATED = Counter(
	"campus_community_posts_created_total",
	"Group posts created",
)

COMMUNITY_COMMENTS_CREATED = Counter(
	"campus_community_comments_created_total",
	"Comments created",
)

COMMUNITY_REACTIONS = Counter(
	"campus_community_reactions_total",
	"Post like toggles",
	["action"],
)

FEED_PAGE_LATENCY = Histogram(
	"campus_community_feed_build_seconds",
	"Time to build one feed page",
	["view"],
	buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

SEARCH_QUERIES = Counter(
	"campus_search_queries_total",
	"Search queries served",
	["kind"],
)

SEARCH_LATENCY = Histogram(
	"campus_search_latency_seconds",
	"Search latency in seconds",
	["kind"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0),
)

SEARCH_CACHE = Counter(
	"campus_search_cache_total",
	"Search cache lookups",
	["kind", "result"],
)


def observe_request(route: str, method: str, status: int, latency_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(latency_seconds)


def inc_community_groups_created() -> None:
	COMMUNITY_GROUPS_CREATED.inc()


def inc_community_groups_deleted() -> None:
	COMMUNITY_GROUPS_DELETED.inc()


def inc_membership_transition(transition: str, amount: int = 1) -> None:
	COMMUNITY_MEMBERSHIP_TRANSITIONS.labels(transition=transition).inc(amount)


def inc_social_transition(transition: str) -> None:
	SOCIAL_GRAPH_TRANSITIONS.labels(transition=transition).inc()


def inc_community_posts_created() -> None:
	COMMUNITY_POSTS_CREATED.inc()


def inc_community_comments_created() -> None:
	COMMUNITY_COMMENTS_CREATED.inc()


def inc_community_reaction(action: str) -> None:
	COMMUNITY_REACTIONS.labels(action=action).inc()


def observe_feed_build(view: str, latency_seconds: float) -> None:
	FEED_PAGE_LATENCY.labels(view=view).observe(latency_seconds)


def inc_search_query(kind: str) -> None:
	SEARCH_QUERIES.labels(kind=kind).inc()


def observe_search_latency(kind: str, latency_seconds: float) -> None:
	SEARCH_LATENCY.labels(kind=kind).observe(latency_seconds)


def inc_search_cache(kind: str, result: str) -> None:
	SEARCH_CACHE.labels(kind=kind, result=result).inc()
