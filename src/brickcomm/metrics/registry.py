"""Prometheus metrics registry for link connections."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

CONNECTION_STATES: Final = ("disconnected", "connecting", "connected")

# Metric definitions
brickcomm_connect_attempts_total: Final = Counter(  # type: ignore[assignment]
    "brickcomm_connect_attempts_total",
    "Total connection establishment attempts",
    ["transport", "mode", "outcome"],
)

brickcomm_disconnects_total: Final = Counter(  # type: ignore[assignment]
    "brickcomm_disconnects_total",
    "Total sessions torn down",
    ["transport"],
)

brickcomm_connection_state: Final = Gauge(  # type: ignore[assignment]
    "brickcomm_connection_state",
    "Current connection state",
    ["device", "state"],
)

brickcomm_values_sent_total: Final = Counter(  # type: ignore[assignment]
    "brickcomm_values_sent_total",
    "Total primitive values written to the link",
    ["transport", "kind", "outcome"],
)

brickcomm_values_received_total: Final = Counter(  # type: ignore[assignment]
    "brickcomm_values_received_total",
    "Total primitive values read from the link",
    ["transport", "kind", "outcome"],
)

brickcomm_send_latency_seconds: Final = Histogram(  # type: ignore[assignment]
    "brickcomm_send_latency_seconds",
    "Write plus flush duration of one value in seconds",
    ["transport"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

brickcomm_discovery_lookups_total: Final = Counter(  # type: ignore[assignment]
    "brickcomm_discovery_lookups_total",
    "Peer resolutions by where they were satisfied (cache, scan, miss)",
    ["source"],
)

_server_state = {"started": False}
_server_lock = threading.Lock()


def start_metrics_server(port: int = 9400) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_connect_attempt(transport: str, mode: str, outcome: str) -> None:
    """Record a connect attempt (mode: accept or dial)."""
    brickcomm_connect_attempts_total.labels(transport=transport, mode=mode, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_disconnect(transport: str) -> None:
    """Record a session teardown."""
    brickcomm_disconnects_total.labels(transport=transport).inc()  # type: ignore[no-untyped-call]


def record_connection_state(device: str, state: str) -> None:
    """Record connection state change."""
    # Set gauge to 1 for current state, 0 for all others
    for s in CONNECTION_STATES:
        value = 1 if s == state else 0
        brickcomm_connection_state.labels(device=device, state=s).set(value)  # type: ignore[no-untyped-call]


def record_value_sent(transport: str, kind: str, outcome: str, latency_seconds: float | None = None) -> None:
    """Record a value written to the link."""
    brickcomm_values_sent_total.labels(transport=transport, kind=kind, outcome=outcome).inc()  # type: ignore[no-untyped-call]
    if latency_seconds is not None:
        brickcomm_send_latency_seconds.labels(transport=transport).observe(latency_seconds)  # type: ignore[no-untyped-call]


def record_value_received(transport: str, kind: str, outcome: str) -> None:
    """Record a value read from the link."""
    brickcomm_values_received_total.labels(transport=transport, kind=kind, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_discovery_lookup(source: str) -> None:
    """Record where a peer resolution was satisfied."""
    brickcomm_discovery_lookups_total.labels(source=source).inc()  # type: ignore[no-untyped-call]
