# -*- coding: utf-8 -*-
"""
Validation Engine - Stream Specification

Turns the stream list and the interval/grid configuration into an ordered
list of typed diagnostics. Validation is pure with respect to its inputs
and is meant to run on every edit; it never raises for bad user data.

Per-stream checks:
    - Name present; names unique across the set
    - Scalar Spec completeness (fixed value / range bounds parse)
    - Isothermal kinds: Tin == Tout, kind-consistent mode, Hvap > 0
    - Non-isothermal kinds: Tout present, direction of heat transfer
    - MVR: F fixed, Pin a strictly increasing range, Pout present
    - Non-negative HTC / Tcont / min_TD / superheating / subcooling
    - Heat capacity or 6-coefficient polynomial; composition fractions
    - Converted values finite in SI; known unit labels when strict

Configuration checks:
    - use_clapeyron unsupported
    - Grid method caps (maxDeltaT, maxnumT)
    - Custom temperature nodes
    - MVR sub-configuration ranges
    - Forbidden/constrained match rows

Severity: ``error`` blocks build/solve, ``warn`` is advisory.
Ordering: each stream's issues (including its duplicate-name error) in
stream order, then configuration issues.

Example:
    >>> from energy_integration.stream_spec.validation import validate_all
    >>> issues = validate_all(streams, intervals_config)
    >>> has_blocking_error(issues)
    False
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Dict, List, Optional, Sequence, Set, Tuple

from energy_integration.stream_spec.config import StreamSpecConfig, get_config
from energy_integration.stream_spec.metrics import record_issue, record_validation_run
from energy_integration.stream_spec.models import (
    SCALAR_FIELDS,
    IntervalsConfig,
    Issue,
    IssueLevel,
    NodeRule,
    ScalarMode,
    StreamKind,
    StreamRow,
    TGridMethod,
    ThermalKind,
)
from energy_integration.stream_spec.units import (
    SCALAR_FIELD_QUANTITIES,
    UNIT_NUMBER_FIELD_QUANTITIES,
    convert,
    is_finite_si,
    is_known_unit,
    minmax_of_spec,
    parse_frac,
    parse_num,
    parse_number_list,
)

logger = logging.getLogger(__name__)

__all__ = [
    "NONNEGATIVE_FIELDS",
    "MVR_EFFICIENCY_FIELDS",
    "StreamValidator",
    "validate_all",
    "validate_stream",
    "validate_intervals_config",
    "has_blocking_error",
    "count_by_level",
]

NONNEGATIVE_FIELDS: Tuple[str, ...] = (
    "HTC", "Tcont", "min_TD", "superheating_deg", "subcooling_deg",
)

MVR_EFFICIENCY_FIELDS: Tuple[str, ...] = (
    "isentropic_efficiency", "polytropic_efficiency", "mechanical_efficiency",
)


def _error(stream_id: str, field: Optional[str], message: str) -> Issue:
    return Issue(level=IssueLevel.ERROR, stream_id=stream_id, field=field, message=message)


def _warn(stream_id: str, field: Optional[str], message: str) -> Issue:
    return Issue(level=IssueLevel.WARN, stream_id=stream_id, field=field, message=message)


# ---------------------------------------------------------------------------
# StreamValidator
# ---------------------------------------------------------------------------


class StreamValidator:
    """Validation engine for stream sets and their interval configuration.

    Attributes:
        config: StreamSpecConfig in use.
        tolerance: Absolute temperature tolerance.

    Example:
        >>> validator = StreamValidator()
        >>> issues = validator.validate_all(streams, intervals_config)
        >>> print(sum(1 for i in issues if i.level == "error"))
    """

    def __init__(self, config: Optional[StreamSpecConfig] = None) -> None:
        """Initialise StreamValidator.

        Args:
            config: Optional configuration. Uses global config if None.
        """
        self.config = config or get_config()
        self.tolerance: float = self.config.temperature_tolerance
        self._lock = threading.Lock()
        self._stats: Dict[str, int] = {
            "passes": 0,
            "streams_validated": 0,
            "issues_error": 0,
            "issues_warn": 0,
        }
        logger.info(
            "StreamValidator initialised: tolerance=%g", self.tolerance,
        )

    # ------------------------------------------------------------------
    # Whole-set validation
    # ------------------------------------------------------------------

    def validate_all(
        self,
        streams: Sequence[StreamRow],
        intervals_config: Optional[IntervalsConfig] = None,
    ) -> List[Issue]:
        """Validate every stream, names across streams, then the configuration.

        Args:
            streams: Streams in display order.
            intervals_config: Interval configuration, or None to skip it.

        Returns:
            Ordered list of issues.
        """
        start = time.perf_counter()
        issues: List[Issue] = []
        seen: Dict[str, str] = {}

        for s in streams:
            issues.extend(self.validate_stream(s))
            name = s.name.strip()
            if name:
                if name in seen:
                    issues.append(_error(s.id, "name", f"duplicate name: {name}"))
                else:
                    seen[name] = s.id

        if intervals_config is not None:
            issues.extend(self.validate_intervals_config(intervals_config, streams))

        self._record(len(streams), issues, time.perf_counter() - start)
        return issues

    # ------------------------------------------------------------------
    # Per-stream validation
    # ------------------------------------------------------------------

    def validate_stream(self, s: StreamRow) -> List[Issue]:
        """Validate one stream in isolation.

        Args:
            s: Stream to check.

        Returns:
            Issues for this stream, in rule order.
        """
        issues: List[Issue] = []

        if not s.name.strip():
            issues.append(_error(s.id, "name", "name is required"))

        issues.extend(self._check_scalar_fields(s))

        if s.kind.is_isothermal:
            issues.extend(self._check_isothermal(s))
        else:
            issues.extend(self._check_direction(s))
            if s.kind == StreamKind.MVR:
                issues.extend(self._check_mvr(s))

        for label in NONNEGATIVE_FIELDS:
            v = parse_num(s.unit_number(label).value)
            if v is not None and v < 0.0:
                issues.append(_error(s.id, label, f"{label} must be ≥ 0"))

        issues.extend(self._check_heat_capacity(s))

        if s.frac_text.strip() and not parse_frac(s.frac_text):
            issues.append(_warn(s.id, "frac", "frac cannot be parsed"))

        issues.extend(self._check_units(s))

        return issues

    def _check_scalar_fields(self, s: StreamRow) -> List[Issue]:
        issues: List[Issue] = []
        for label in SCALAR_FIELDS:
            spec = s.scalar(label)
            if spec.mode == ScalarMode.RANGE:
                lo = parse_num(spec.lo)
                hi = parse_num(spec.hi)
                if lo is None or hi is None:
                    issues.append(_error(s.id, label, f"{label}: range requires lo and hi"))
                elif lo > hi:
                    issues.append(_warn(s.id, label, f"{label}: lo > hi (will be canonicalized)"))
            elif parse_num(spec.value) is None:
                # pressures are optional unless the stream is a compressor
                if label in ("Pin", "Pout") and s.kind != StreamKind.MVR:
                    continue
                issues.append(_error(s.id, label, f"{label}: value is required"))
        return issues

    def _check_isothermal(self, s: StreamRow) -> List[Issue]:
        issues: List[Issue] = []
        t_in = minmax_of_spec(s.t_in)
        t_out = minmax_of_spec(s.t_out)

        if t_in is None or t_out is None:
            issues.append(_error(s.id, "Tin/Tout", "isothermal requires Tin and Tout"))
        elif not (
            self._approx_equal(t_in[0], t_out[0])
            and self._approx_equal(t_in[1], t_out[1])
        ):
            issues.append(_error(s.id, "Tin/Tout", "isothermal requires Tin ≡ Tout"))

        if s.kind == StreamKind.ISOTHERMAL_FIXED:
            if s.t_in.mode != ScalarMode.FIXED or s.t_out.mode != ScalarMode.FIXED:
                issues.append(_error(
                    s.id, "Tin/Tout", "IsothermalFixed requires Tin and Tout fixed",
                ))
        elif s.t_in.mode != ScalarMode.RANGE or s.t_out.mode != ScalarMode.RANGE:
            issues.append(_error(
                s.id, "Tin/Tout",
                "IsothermalVariable requires Tin and Tout variable (range)",
            ))

        hvap = parse_num(s.hvap.value)
        if hvap is None or hvap <= 0.0:
            issues.append(_error(s.id, "Hvap", "isothermal stream requires Hvap > 0"))
        return issues

    def _check_direction(self, s: StreamRow) -> List[Issue]:
        issues: List[Issue] = []
        t_in = minmax_of_spec(s.t_in)
        t_out = minmax_of_spec(s.t_out)

        if t_out is None:
            issues.append(_error(s.id, "Tout", "non-isothermal stream requires Tout"))

        if t_in is not None and t_out is not None:
            if s.thermal == ThermalKind.HOT:
                if t_in[0] < t_out[1] - self.tolerance:
                    issues.append(_error(s.id, "Tin/Tout", "thermal=hot requires Tin ≥ Tout"))
            elif t_out[0] < t_in[1] - self.tolerance:
                issues.append(_error(s.id, "Tin/Tout", "thermal=cold requires Tout ≥ Tin"))
        return issues

    def _check_mvr(self, s: StreamRow) -> List[Issue]:
        issues: List[Issue] = []
        if s.flow.mode != ScalarMode.FIXED:
            issues.append(_error(s.id, "F", "MVR requires fixed F"))

        if s.p_in.mode != ScalarMode.RANGE:
            issues.append(_error(s.id, "Pin", "MVR requires Pin to be a range (lo, hi)"))
        else:
            lo = parse_num(s.p_in.lo)
            hi = parse_num(s.p_in.hi)
            # missing bounds are already reported by the range check
            if lo is not None and hi is not None and not hi > lo:
                issues.append(_error(s.id, "Pin", "MVR requires Pin.hi > Pin.lo"))

        if s.p_out.mode == ScalarMode.FIXED:
            p_out = parse_num(s.p_out.value)
        else:
            p_out = parse_num(s.p_out.lo)
        if p_out is None:
            issues.append(_error(s.id, "Pout", "MVR requires Pout"))
        return issues

    def _check_heat_capacity(self, s: StreamRow) -> List[Issue]:
        if not s.use_advanced_hcoeff:
            if parse_num(s.cp.value) is None:
                return [_warn(s.id, "Cp", "Cp is empty (Hcoeff will be zeros)")]
            return []

        if len(s.hcoeff6) != 6:
            return [_error(s.id, "Hcoeff6", "Hcoeff6 must have 6 entries")]
        for i, text in enumerate(s.hcoeff6):
            if parse_num(text) is None:
                return [_error(s.id, "Hcoeff6", f"Hcoeff6[{i + 1}] is not a number")]
        return []

    def _converted_fields(self, s: StreamRow):
        """Yield ``(label, quantity, unit, numbers)`` for every field the
        payload converts to SI and that currently holds numbers."""
        for label, quantity in SCALAR_FIELD_QUANTITIES.items():
            if label in ("Pin", "Pout") and s.kind != StreamKind.MVR:
                continue
            spec = s.scalar(label)
            bounds = minmax_of_spec(spec)
            if bounds is not None:
                yield label, quantity, spec.unit, bounds
        for label, quantity in UNIT_NUMBER_FIELD_QUANTITIES.items():
            if label == "Cp" and s.use_advanced_hcoeff:
                continue
            u = s.unit_number(label)
            v = parse_num(u.value)
            if v is not None:
                yield label, quantity, u.unit, (v,)

    def _check_units(self, s: StreamRow) -> List[Issue]:
        issues: List[Issue] = []
        for label, quantity, unit, numbers in self._converted_fields(s):
            if self.config.strict_units and not is_known_unit(quantity, unit):
                issues.append(_error(s.id, label, f"{label}: unknown unit '{unit}'"))
                continue
            si = tuple(convert(quantity, v, unit) for v in numbers)
            if not is_finite_si(si):
                issues.append(_error(s.id, label, f"{label}: value is out of range in SI"))
        return issues

    # ------------------------------------------------------------------
    # Configuration validation
    # ------------------------------------------------------------------

    def validate_intervals_config(
        self,
        cfg: IntervalsConfig,
        streams: Sequence[StreamRow],
    ) -> List[Issue]:
        """Validate the interval/grid configuration against the stream set.

        Args:
            cfg: Interval configuration.
            streams: Current streams; their names resolve forbidden-match rows.

        Returns:
            Configuration issues, owned by the configuration sentinel id.
        """
        owner = self.config.interval_issue_owner
        issues: List[Issue] = []

        if cfg.use_clapeyron:
            issues.append(_error(
                owner, "use_clapeyron",
                "use_clapeyron requires a mixture (not supported in this web app)",
            ))

        method = cfg.t_interval_method
        if method in (TGridMethod.LIMIT_SPAN, TGridMethod.BOTH):
            v = parse_num(cfg.max_delta_t)
            if v is None or not v > 0.0:
                issues.append(_error(
                    owner, "maxDeltaT",
                    "maxDeltaT must be > 0 when method is limit_span/both",
                ))
        if method in (TGridMethod.CAP_COUNT, TGridMethod.BOTH):
            n = parse_num(cfg.max_num_t)
            if n is None or not (n.is_integer() and n > 0):
                issues.append(_error(
                    owner, "maxnumT",
                    "maxnumT must be an integer > 0 when method is cap_count/both",
                ))

        issues.extend(self._check_nodes(cfg, owner))
        issues.extend(self._check_mvr_config(cfg, owner))
        issues.extend(self._check_forbidden_matches(cfg, streams, owner))
        return issues

    def _check_nodes(self, cfg: IntervalsConfig, owner: str) -> List[Issue]:
        if cfg.node_rule != NodeRule.CUSTOM:
            if cfg.t_nodes_specified_text.strip():
                return [_warn(
                    owner, "T_nodes_specified",
                    "T_nodes_specified will be ignored unless node_rule is custom",
                )]
            return []

        nodes = parse_number_list(cfg.t_nodes_specified_text)
        if not nodes:
            return [_error(
                owner, "T_nodes_specified",
                "custom node_rule requires T_nodes_specified (K) list",
            )]
        for a, b in zip(nodes, nodes[1:]):
            if a < b - self.tolerance:
                return [_warn(
                    owner, "T_nodes_specified",
                    "T_nodes_specified should be descending in K",
                )]
        return []

    def _check_mvr_config(self, cfg: IntervalsConfig, owner: str) -> List[Issue]:
        issues: List[Issue] = []
        mvr = cfg.mvr_config
        if not mvr.mode.strip():
            issues.append(_warn(owner, "mvr_config.mode", "mvr_config.mode is empty"))

        step_ratio = parse_num(mvr.step_ratio)
        if step_ratio is None or not step_ratio > 0.0:
            issues.append(_error(
                owner, "mvr_config.step_ratio", "mvr_config.step_ratio must be > 0",
            ))

        for key in MVR_EFFICIENCY_FIELDS:
            v = parse_num(getattr(mvr, key))
            if v is None or not 0.0 < v <= 1.0:
                issues.append(_error(
                    owner, f"mvr_config.{key}", f"{key} must be in (0, 1]",
                ))
        return issues

    def _check_forbidden_matches(
        self,
        cfg: IntervalsConfig,
        streams: Sequence[StreamRow],
        owner: str,
    ) -> List[Issue]:
        issues: List[Issue] = []
        known: Set[str] = {s.name.strip() for s in streams if s.name.strip()}

        for row in cfg.forbidden_match:
            if row.is_blank():
                continue
            hot = row.hot.strip()
            cold = row.cold.strip()
            if not hot or not cold:
                issues.append(_error(
                    owner, "forbidden_match",
                    "forbidden_match rows require hot and cold stream names",
                ))
                continue
            # no stream names yet means nothing to check against
            if known and (hot not in known or cold not in known):
                issues.append(_warn(
                    owner, "forbidden_match",
                    f"unknown stream name(s) in forbidden_match: {hot}, {cold}",
                ))

            lb = parse_num(row.q_lb)
            ub = parse_num(row.q_ub)
            if lb is None or ub is None:
                issues.append(_error(
                    owner, "forbidden_match",
                    "forbidden_match Q_lb/Q_ub must be numbers",
                ))
                continue
            if lb > ub:
                issues.append(_error(
                    owner, "forbidden_match", "forbidden_match requires Q_lb ≤ Q_ub",
                ))
            elif lb == 0.0 and ub == 0.0:
                issues.append(_warn(
                    owner, "forbidden_match", f"forbid match ({hot}, {cold})",
                ))
        return issues

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _approx_equal(self, a: float, b: float) -> bool:
        return abs(a - b) <= self.tolerance

    def _record(self, n_streams: int, issues: List[Issue], duration: float) -> None:
        errors, warnings = count_by_level(issues)
        with self._lock:
            self._stats["passes"] += 1
            self._stats["streams_validated"] += n_streams
            self._stats["issues_error"] += errors
            self._stats["issues_warn"] += warnings

        if errors:
            outcome = "blocked"
        elif warnings:
            outcome = "warnings"
        else:
            outcome = "clean"
        record_validation_run(outcome, duration)
        for issue in issues:
            record_issue(issue.level.value, issue.field or "")

        logger.debug(
            "Validated %d streams in %.3f ms: %d errors, %d warnings",
            n_streams, duration * 1000, errors, warnings,
        )

    def get_statistics(self) -> Dict[str, int]:
        """Return a snapshot of validation counters."""
        with self._lock:
            return dict(self._stats)


# ---------------------------------------------------------------------------
# Module-level convenience API
# ---------------------------------------------------------------------------

_default_validator: Optional[StreamValidator] = None
_default_lock = threading.Lock()


def _get_default_validator() -> StreamValidator:
    global _default_validator
    if _default_validator is None or _default_validator.config is not get_config():
        with _default_lock:
            if _default_validator is None or _default_validator.config is not get_config():
                _default_validator = StreamValidator()
    return _default_validator


def validate_all(
    streams: Sequence[StreamRow],
    intervals_config: Optional[IntervalsConfig] = None,
) -> List[Issue]:
    """Validate ``streams`` and ``intervals_config`` with the global config."""
    return _get_default_validator().validate_all(streams, intervals_config)


def validate_stream(stream: StreamRow) -> List[Issue]:
    """Validate one stream with the global config."""
    return _get_default_validator().validate_stream(stream)


def validate_intervals_config(
    cfg: IntervalsConfig,
    streams: Sequence[StreamRow],
) -> List[Issue]:
    """Validate the interval configuration with the global config."""
    return _get_default_validator().validate_intervals_config(cfg, streams)


def has_blocking_error(issues: Sequence[Issue]) -> bool:
    """True when at least one issue has level ``error``."""
    return any(i.level == IssueLevel.ERROR for i in issues)


def count_by_level(issues: Sequence[Issue]) -> Tuple[int, int]:
    """Return ``(errors, warnings)``."""
    errors = sum(1 for i in issues if i.level == IssueLevel.ERROR)
    return errors, len(issues) - errors
