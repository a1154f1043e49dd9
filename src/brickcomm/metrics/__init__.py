"""Metrics module."""

from .registry import (
    record_connect_attempt,
    record_connection_state,
    record_disconnect,
    record_discovery_lookup,
    record_value_received,
    record_value_sent,
    start_metrics_server,
)

__all__ = [
    "record_connect_attempt",
    "record_connection_state",
    "record_disconnect",
    "record_discovery_lookup",
    "record_value_received",
    "record_value_sent",
    "start_metrics_server",
]
