# -*- coding: utf-8 -*-
"""
Prometheus Metrics - Stream Specification Engine

Metrics:
    1.  ei_stream_spec_validation_runs_total (Counter, labels: outcome)
    2.  ei_stream_spec_validation_duration_seconds (Histogram)
    3.  ei_stream_spec_issues_total (Counter, labels: level, field)
    4.  ei_stream_spec_payloads_built_total (Counter)
    5.  ei_stream_spec_payloads_blocked_total (Counter)
    6.  ei_stream_spec_kind_transitions_total (Counter, labels: kind)
    7.  ei_stream_spec_unit_fallbacks_total (Counter, labels: quantity)
    8.  ei_stream_spec_streamset_operations_total (Counter, labels: operation, outcome)
    9.  ei_stream_spec_detail_cache_lookups_total (Counter, labels: cache, result)
    10. ei_stream_spec_session_streams (Gauge)
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Validation passes by outcome (clean, warnings, blocked)
stream_spec_validation_runs_total = Counter(
    "ei_stream_spec_validation_runs_total",
    "Total validation passes over a stream set",
    labelnames=["outcome"],
)

# 2. Validation duration; passes run on every keystroke so buckets are fine
stream_spec_validation_duration_seconds = Histogram(
    "ei_stream_spec_validation_duration_seconds",
    "Validation pass duration in seconds",
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0),
)

# 3. Issues by level and field label
stream_spec_issues_total = Counter(
    "ei_stream_spec_issues_total",
    "Total validation issues emitted",
    labelnames=["level", "field"],
)

# 4. SI payloads produced
stream_spec_payloads_built_total = Counter(
    "ei_stream_spec_payloads_built_total",
    "Total SI payloads built",
)

# 5. Build requests refused because of blocking issues
stream_spec_payloads_blocked_total = Counter(
    "ei_stream_spec_payloads_blocked_total",
    "Total payload requests blocked by validation errors",
)

# 6. Kind transitions by target kind
stream_spec_kind_transitions_total = Counter(
    "ei_stream_spec_kind_transitions_total",
    "Total stream kind transitions",
    labelnames=["kind"],
)

# 7. Unknown unit labels passed through as SI
stream_spec_unit_fallbacks_total = Counter(
    "ei_stream_spec_unit_fallbacks_total",
    "Total unknown unit labels treated as SI",
    labelnames=["quantity"],
)

# 8. Streamset save/load
stream_spec_streamset_operations_total = Counter(
    "ei_stream_spec_streamset_operations_total",
    "Total streamset save/load operations",
    labelnames=["operation", "outcome"],
)

# 9. Detail lookup cache hits/misses
stream_spec_detail_cache_lookups_total = Counter(
    "ei_stream_spec_detail_cache_lookups_total",
    "Total detail lookup cache accesses",
    labelnames=["cache", "result"],
)

# 10. Streams currently held by the session
stream_spec_session_streams = Gauge(
    "ei_stream_spec_session_streams",
    "Number of streams in the current session",
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_validation_run(outcome: str, duration_seconds: float) -> None:
    """Record one validation pass.

    Args:
        outcome: ``clean``, ``warnings`` or ``blocked``.
        duration_seconds: Wall-clock duration of the pass.
    """
    stream_spec_validation_runs_total.labels(outcome=outcome).inc()
    stream_spec_validation_duration_seconds.observe(duration_seconds)


def record_issue(level: str, field: str) -> None:
    """Record one emitted issue."""
    stream_spec_issues_total.labels(level=level, field=field or "-").inc()


def record_payload_built() -> None:
    """Record a successfully built SI payload."""
    stream_spec_payloads_built_total.inc()


def record_payload_blocked() -> None:
    """Record a payload request refused by blocking issues."""
    stream_spec_payloads_blocked_total.inc()


def record_kind_transition(kind: str) -> None:
    """Record a stream kind change."""
    stream_spec_kind_transitions_total.labels(kind=kind).inc()


def record_unit_fallback(quantity: str) -> None:
    """Record an unknown unit label treated as SI."""
    stream_spec_unit_fallbacks_total.labels(quantity=quantity).inc()


def record_streamset_operation(operation: str, outcome: str) -> None:
    """Record a streamset save or load.

    Args:
        operation: ``save`` or ``load``.
        outcome: ``success`` or ``failure``.
    """
    stream_spec_streamset_operations_total.labels(
        operation=operation, outcome=outcome,
    ).inc()


def record_detail_cache_lookup(cache: str, hit: bool) -> None:
    """Record a detail lookup cache access."""
    stream_spec_detail_cache_lookups_total.labels(
        cache=cache, result="hit" if hit else "miss",
    ).inc()


def update_session_streams(count: int) -> None:
    """Set the session stream count gauge."""
    stream_spec_session_streams.set(count)


__all__ = [
    "stream_spec_validation_runs_total",
    "stream_spec_validation_duration_seconds",
    "stream_spec_issues_total",
    "stream_spec_payloads_built_total",
    "stream_spec_payloads_blocked_total",
    "stream_spec_kind_transitions_total",
    "stream_spec_unit_fallbacks_total",
    "stream_spec_streamset_operations_total",
    "stream_spec_detail_cache_lookups_total",
    "stream_spec_session_streams",
    "record_validation_run",
    "record_issue",
    "record_payload_built",
    "record_payload_blocked",
    "record_kind_transition",
    "record_unit_fallback",
    "record_streamset_operation",
    "record_detail_cache_lookup",
    "update_session_streams",
]
