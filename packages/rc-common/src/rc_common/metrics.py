"""
Prometheus metrics for Relaycast.

Shared metric definitions exposed from the gateway's ``/metrics``
endpoint: relay subprocess lifecycle counters, ingest throughput,
session gauges and chat counters.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

ACTIVE_SESSIONS = Gauge(
    "relaycast_active_sessions",
    "Number of sessions currently registered.",
)
RELAY_SPAWNS = Counter(
    "relaycast_relay_spawns_total",
    "Total number of relay subprocesses spawned.",
)
RELAY_FAILURES = Counter(
    "relaycast_relay_failures_total",
    "Relay spawn or runtime failures.",
    ["kind"],
)
CHUNKS_INGESTED = Counter(
    "relaycast_chunks_ingested_total",
    "Media chunks written to relay subprocesses.",
)
BYTES_INGESTED = Counter(
    "relaycast_bytes_ingested_total",
    "Media bytes written to relay subprocesses.",
)
LOCATE_ATTEMPTS = Counter(
    "relaycast_broadcast_locate_attempts_total",
    "Broadcast locate attempts.",
    ["outcome"],
)
CHAT_MESSAGES = Counter(
    "relaycast_chat_messages_total",
    "Chat messages emitted to sessions.",
    ["platform"],
)
CHAT_FETCH_ERRORS = Counter(
    "relaycast_chat_fetch_errors_total",
    "Failed chat poll cycles.",
)
