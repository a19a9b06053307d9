# -*- coding: utf-8 -*-
"""
Solver Response Models and Detail Lookups

Tolerant parsers for the bodies the HEN solver backend returns to the
build, solve and result-detail requests, plus the lookup cache the result
views use for per-match and per-stream detail.

Parsers coerce instead of rejecting: missing lists become empty, labels
become strings, numbers become floats. A body whose ``ok`` flag is not
truthy raises SolverResponseError carrying the backend's
``error.message``.

Detail lookups are cached per key, ``(hot, cold)`` for match matrices and
``(name, unit)`` for stream detail, and the caches are cleared whenever a
new solve completes. A monotonically increasing selection token lets a
caller drop a result whose selection has since moved on.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import OrderedDict
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Hashable,
    List,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

from pydantic import BaseModel, Field

from energy_integration.exceptions import SolverResponseError
from energy_integration.stream_spec.config import get_config
from energy_integration.stream_spec.metrics import record_detail_cache_lookup

logger = logging.getLogger(__name__)

__all__ = [
    "STREAM_UNITS",
    "ResultEdge",
    "EconomicReport",
    "ReportRow",
    "BuildResult",
    "SolveResult",
    "DetailMatrix",
    "StreamDetail",
    "parse_build_response",
    "parse_solve_response",
    "parse_detail_matrix",
    "parse_stream_detail",
    "flatten_solution_report",
    "format_heat",
    "DetailLookupCache",
]

# Display units offered for stream temperature detail.
STREAM_UNITS: Tuple[str, ...] = ("°C", "K", "°F", "°R")

SolutionReport = Dict[str, Union[str, Dict[str, str]]]


# =============================================================================
# Models
# =============================================================================


class ResultEdge(BaseModel):
    """A matched (hot, cold) pair and its total exchanged duty."""

    hot: str
    cold: str
    q_total: float = 0.0


class EconomicReport(BaseModel):
    """Economic summary table, all cells as display strings."""

    column_labels: List[str] = Field(default_factory=list)
    row_labels: List[str] = Field(default_factory=list)
    data: List[List[str]] = Field(default_factory=list)


class ReportRow(BaseModel):
    """One display row of a flattened solution report."""

    key: str
    value: str = ""
    indent: int = 1


class BuildResult(BaseModel):
    """Build response: the superstructure figure, passed through opaque."""

    plot: Dict[str, Any] = Field(default_factory=dict)


class SolveResult(BaseModel):
    """Parsed solve response.

    Attributes:
        hot_names: Hot stream order of the result matrix.
        cold_names: Cold stream order of the result matrix.
        edges: Matches with a non-empty hot and cold name.
        obj_value: Objective value, NaN when the backend omits it.
        solution_report: Nested key/value report, if provided.
        economic_report: Economic table, if provided.
    """

    hot_names: List[str] = Field(default_factory=list)
    cold_names: List[str] = Field(default_factory=list)
    edges: List[ResultEdge] = Field(default_factory=list)
    obj_value: float = math.nan
    solution_report: Optional[SolutionReport] = None
    economic_report: Optional[EconomicReport] = None


class DetailMatrix(BaseModel):
    """Interval-by-interval duty matrix of one hot/cold match."""

    hot: str
    cold: str
    rows: List[str] = Field(default_factory=list)
    cols: List[str] = Field(default_factory=list)
    q: List[List[float]] = Field(default_factory=list)


class StreamDetail(BaseModel):
    """Per-interval duty of one stream in a display unit."""

    name: str
    unit: str
    q_str: List[str] = Field(default_factory=list)
    describes: List[str] = Field(default_factory=list)
    t_upper: List[float] = Field(default_factory=list)
    t_lower: List[float] = Field(default_factory=list)


# =============================================================================
# Parsers
# =============================================================================


def _to_float(v: Any) -> float:
    """Number-like coercion; anything unparseable is NaN."""
    if isinstance(v, bool):
        return float(v)
    if v is None:
        return 0.0
    try:
        return float(v)
    except (TypeError, ValueError):
        return math.nan


def _strings(v: Any) -> List[str]:
    return [str(x) for x in v] if isinstance(v, list) else []


def _floats(v: Any) -> List[float]:
    return [_to_float(x) for x in v] if isinstance(v, list) else []


def _report(v: Any) -> Optional[SolutionReport]:
    if not isinstance(v, dict):
        return None
    report: SolutionReport = {}
    for key, value in v.items():
        if isinstance(value, dict):
            report[str(key)] = {str(k): "" if x is None else str(x) for k, x in value.items()}
        else:
            report[str(key)] = "" if value is None else str(value)
    return report


def _require_ok(body: Any, http_ok: bool, default_message: str) -> Mapping[str, Any]:
    if http_ok and isinstance(body, dict) and body.get("ok"):
        return body
    message = default_message
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message") is not None:
            message = str(error["message"])
    raise SolverResponseError(message, body=body)


def parse_build_response(body: Any, http_ok: bool = True) -> BuildResult:
    """Parse the build response.

    Raises:
        SolverResponseError: If the body is not ok or carries no plot object.
    """
    data = _require_ok(body, http_ok, "Build failed.")
    plot = data.get("plot")
    if not isinstance(plot, dict):
        raise SolverResponseError("Build response has no plot.", body=body)
    return BuildResult(plot=plot)


def parse_solve_response(body: Any, http_ok: bool = True) -> SolveResult:
    """Parse the solve response.

    Args:
        body: Decoded JSON body.
        http_ok: Whether the HTTP status was 2xx.

    Returns:
        SolveResult with edges lacking a stream name dropped.

    Raises:
        SolverResponseError: If the body is not ok.
    """
    data = _require_ok(body, http_ok, "Solve failed.")

    edges: List[ResultEdge] = []
    raw_edges = data.get("edges")
    for e in raw_edges if isinstance(raw_edges, list) else []:
        e = e if isinstance(e, dict) else {}
        hot = "" if e.get("hot") is None else str(e["hot"])
        cold = "" if e.get("cold") is None else str(e["cold"])
        if hot and cold:
            edges.append(ResultEdge(hot=hot, cold=cold, q_total=_to_float(e.get("q_total"))))

    econ = data.get("economic_report")
    economic: Optional[EconomicReport] = None
    if isinstance(econ, dict):
        rows = econ.get("data")
        economic = EconomicReport(
            column_labels=_strings(econ.get("column_labels")),
            row_labels=_strings(econ.get("row_labels")),
            data=[_strings(r) for r in rows] if isinstance(rows, list) else [],
        )

    obj = data.get("obj_value")
    result = SolveResult(
        hot_names=_strings(data.get("hot_names")),
        cold_names=_strings(data.get("cold_names")),
        edges=edges,
        obj_value=math.nan if obj is None else _to_float(obj),
        solution_report=_report(data.get("solution_report")),
        economic_report=economic,
    )
    logger.info(
        "Parsed solve response: %d hot, %d cold, %d matches, obj=%s",
        len(result.hot_names), len(result.cold_names), len(edges), result.obj_value,
    )
    return result


def parse_detail_matrix(
    body: Any, hot: str, cold: str, http_ok: bool = True,
) -> DetailMatrix:
    """Parse a match-detail response for ``(hot, cold)``."""
    data = _require_ok(body, http_ok, "Failed to load detail matrix.")
    q = data.get("q")
    return DetailMatrix(
        hot=str(data.get("hot") if data.get("hot") is not None else hot),
        cold=str(data.get("cold") if data.get("cold") is not None else cold),
        rows=_strings(data.get("rows")),
        cols=_strings(data.get("cols")),
        q=[_floats(r) for r in q] if isinstance(q, list) else [],
    )


def parse_stream_detail(
    body: Any, name: str, unit: str, http_ok: bool = True,
) -> StreamDetail:
    """Parse a stream-detail response for ``(name, unit)``."""
    data = _require_ok(body, http_ok, "Failed to load stream detail.")
    return StreamDetail(
        name=str(data.get("name") if data.get("name") is not None else name),
        unit=str(data.get("unit") if data.get("unit") is not None else unit),
        q_str=_strings(data.get("q_str")),
        describes=_strings(data.get("describes")),
        t_upper=_floats(data.get("t_upper")),
        t_lower=_floats(data.get("t_lower")),
    )


def flatten_solution_report(report: Optional[SolutionReport]) -> List[ReportRow]:
    """Flatten a nested solution report into indented display rows."""
    rows: List[ReportRow] = []
    for key, value in (report or {}).items():
        if isinstance(value, dict):
            rows.append(ReportRow(key=key, value="", indent=1))
            for k2, v2 in value.items():
                rows.append(ReportRow(key=k2, value=str(v2), indent=2))
        else:
            rows.append(ReportRow(key=key, value="" if value is None else str(value), indent=1))
    return rows


def format_heat(value: float) -> str:
    """Format a duty for a result cell; zero and non-finite are blank."""
    if not math.isfinite(value) or value == 0:
        return ""
    a = abs(value)
    if a >= 1e6 or a < 1e-2:
        mantissa, exponent = f"{value:.2e}".split("e")
        return f"{mantissa}e{int(exponent):+d}"
    if a >= 100:
        return f"{value:.1f}"
    return f"{value:.2f}"


# =============================================================================
# DetailLookupCache
# =============================================================================

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class DetailLookupCache(Generic[K, V]):
    """Keyed cache for detail lookups with a selection token.

    ``get_or_fetch`` checks and populates under the lock but runs the fetch
    outside it. A fetch that straddles ``clear()`` does not repopulate the
    cache with results from the previous solve.

    Example:
        >>> cache = DetailLookupCache("match")
        >>> token = cache.select(("h1", "c1"))
        >>> m = cache.get_or_fetch(("h1", "c1"), fetch)
        >>> if cache.is_current(token):
        ...     show(m)
    """

    def __init__(self, name: str, max_size: Optional[int] = None) -> None:
        self.name = name
        self.max_size = max_size if max_size is not None else get_config().detail_cache_size
        self._entries: "OrderedDict[K, V]" = OrderedDict()
        self._lock = threading.Lock()
        self._token = 0
        self._generation = 0
        self._hits = 0
        self._misses = 0

    def get(self, key: K) -> Optional[V]:
        """Return the cached value for ``key`` or None."""
        with self._lock:
            value = self._entries.get(key)
            if value is not None:
                self._entries.move_to_end(key)
                self._hits += 1
            else:
                self._misses += 1
        record_detail_cache_lookup(self.name, value is not None)
        return value

    def put(self, key: K, value: V) -> None:
        """Store ``value`` under ``key``, evicting the least recently used entry."""
        with self._lock:
            self._put_locked(key, value)

    def _put_locked(self, key: K, value: V) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def get_or_fetch(self, key: K, fetch: Callable[[K], V]) -> V:
        """Return the cached value, or call ``fetch(key)`` and cache its result.

        Exceptions from ``fetch`` propagate and nothing is cached.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        with self._lock:
            generation = self._generation
        value = fetch(key)
        with self._lock:
            if generation == self._generation:
                self._put_locked(key, value)
            else:
                logger.debug("Discarding %s detail for %r fetched before clear", self.name, key)
        return value

    def select(self, key: K) -> int:
        """Start a new selection and return its token."""
        with self._lock:
            self._token += 1
            token = self._token
        logger.debug("%s selection %d -> %r", self.name, token, key)
        return token

    def is_current(self, token: int) -> bool:
        """True when no later selection has been started since ``token``."""
        with self._lock:
            return token == self._token

    def clear(self) -> None:
        """Drop every entry; called after each completed solve."""
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
            self._generation += 1
        logger.debug("Cleared %s detail cache (%d entries)", self.name, dropped)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def get_statistics(self) -> Dict[str, int]:
        """Return hit/miss counters and the current size."""
        with self._lock:
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
            }
