# -*- coding: utf-8 -*-
"""
Stream Specification Service Setup

Provides the ``StreamSpecService`` facade that owns one editing session
(the ordered stream list and the single interval configuration) and wires
together the engines of the package: kind canonicalization, validation,
unit conversion, payload building, streamset persistence, detail lookup
caches and provenance.

Also exposes ``configure_stream_spec(app)`` which attaches a started
service to ``app.state``, and ``get_stream_spec(app)`` for programmatic
access.

Usage:
    >>> from energy_integration.stream_spec.setup import StreamSpecService
    >>> service = StreamSpecService()
    >>> h1 = service.add_stream("hot")
    >>> issues = service.validate()
    >>> payload = service.build_payload()
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from energy_integration.exceptions import (
    PayloadBlockedError,
    StreamNotFoundError,
    StreamSpecException,
)
from energy_integration.stream_spec.config import StreamSpecConfig, get_config
from energy_integration.stream_spec.metrics import (
    record_payload_blocked,
    record_payload_built,
    record_streamset_operation,
    update_session_streams,
)
from energy_integration.stream_spec.models import (
    SCALAR_FIELDS,
    ForbiddenMatch,
    IntervalsConfig,
    Issue,
    PayloadSI,
    ScalarMode,
    ScalarSpec,
    StreamKind,
    StreamRow,
    ThermalKind,
    default_intervals_config,
    duplicate_stream,
    make_default_stream,
    new_forbidden_match,
)
from energy_integration.stream_spec.payload import PayloadBuilder
from energy_integration.stream_spec.provenance import ProvenanceTracker, compute_hash
from energy_integration.stream_spec.results import (
    DetailLookupCache,
    DetailMatrix,
    SolveResult,
    StreamDetail,
    parse_solve_response,
)
from energy_integration.stream_spec.scalar_spec import set_mode, toggle_mode
from energy_integration.stream_spec.stream_kind import (
    apply_kind_canonicalization,
    apply_spec_update,
)
from energy_integration.stream_spec.streamset import (
    Streamset,
    load_streamset,
    new_streamset,
    write_streamset,
)
from energy_integration.stream_spec.units import UnitConversionEngine
from energy_integration.stream_spec.validation import (
    StreamValidator,
    count_by_level,
)

logger = logging.getLogger(__name__)


# ===================================================================
# Statistics model
# ===================================================================


class StreamSpecStatistics(BaseModel):
    """Aggregate statistics for one StreamSpecService.

    Attributes:
        total_streams: Streams currently in the session.
        streams_added: Streams added (including duplicates).
        streams_removed: Streams deleted.
        kind_changes: Kind transitions applied.
        validation_runs: Validation passes run.
        last_error_count: Errors reported by the latest pass.
        last_warning_count: Warnings reported by the latest pass.
        payloads_built: SI payloads built.
        payloads_blocked: Payload requests refused.
        streamsets_saved: Streamsets saved.
        streamsets_loaded: Streamsets loaded.
        solves_recorded: Solve responses accepted.
    """
    total_streams: int = Field(default=0)
    streams_added: int = Field(default=0)
    streams_removed: int = Field(default=0)
    kind_changes: int = Field(default=0)
    validation_runs: int = Field(default=0)
    last_error_count: int = Field(default=0)
    last_warning_count: int = Field(default=0)
    payloads_built: int = Field(default=0)
    payloads_blocked: int = Field(default=0)
    streamsets_saved: int = Field(default=0)
    streamsets_loaded: int = Field(default=0)
    solves_recorded: int = Field(default=0)


# ===================================================================
# StreamSpecService facade
# ===================================================================

# Thread-safe singleton lock
_singleton_lock = threading.Lock()
_singleton_instance: Optional["StreamSpecService"] = None


class StreamSpecService:
    """Unified facade over the stream specification engine.

    All mutating operations replace the affected stream record instead of
    editing it in place, so records handed out earlier stay unchanged.

    Attributes:
        config: StreamSpecConfig instance.
        provenance: ProvenanceTracker for SHA-256 audit trails.
        validator: StreamValidator engine.
        converter: UnitConversionEngine shared with the payload builder.
        builder: PayloadBuilder engine.
        match_details: Cache of match detail matrices keyed by (hot, cold).
        stream_details: Cache of stream details keyed by (name, unit).

    Example:
        >>> service = StreamSpecService(seed_defaults=False)
        >>> s = service.add_stream("hot")
        >>> service.change_kind(s.id, "IsothermalFixed")
    """

    def __init__(
        self,
        config: Optional[StreamSpecConfig] = None,
        seed_defaults: bool = True,
    ) -> None:
        """Initialize the service.

        Args:
            config: Optional configuration. Uses global config if None.
            seed_defaults: Start the session with one default hot and one
                default cold stream (``h1``, ``c1``) as the editor does.
        """
        self.config = config or get_config()
        self.provenance = ProvenanceTracker()
        self.validator = StreamValidator(self.config)
        self.converter = UnitConversionEngine(self.config)
        self.builder = PayloadBuilder(self.config, self.converter)
        self.match_details: DetailLookupCache[Tuple[str, str], DetailMatrix] = (
            DetailLookupCache("match", self.config.detail_cache_size)
        )
        self.stream_details: DetailLookupCache[Tuple[str, str], StreamDetail] = (
            DetailLookupCache("stream", self.config.detail_cache_size)
        )

        self._lock = threading.RLock()
        self._streams: List[StreamRow] = []
        self._intervals_config: IntervalsConfig = default_intervals_config()
        self._issues: List[Issue] = []
        self._last_solve: Optional[SolveResult] = None
        self._stats = StreamSpecStatistics()
        self._started = False

        if seed_defaults:
            self._streams = [
                make_default_stream(1, ThermalKind.HOT),
                make_default_stream(1, ThermalKind.COLD),
            ]
            self._stats.total_streams = len(self._streams)

        logger.info(
            "StreamSpecService initialised: %d streams, provenance=%s",
            len(self._streams), self.config.enable_provenance,
        )

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    @property
    def streams(self) -> List[StreamRow]:
        """Copies of the streams in display order."""
        with self._lock:
            return [s.model_copy(deep=True) for s in self._streams]

    @property
    def intervals_config(self) -> IntervalsConfig:
        """A copy of the current interval configuration."""
        with self._lock:
            return self._intervals_config.model_copy(deep=True)

    @property
    def issues(self) -> List[Issue]:
        """Issues of the latest validation pass."""
        with self._lock:
            return list(self._issues)

    @property
    def last_solve(self) -> Optional[SolveResult]:
        """The latest accepted solve result, if any."""
        with self._lock:
            return self._last_solve

    def _index_of(self, stream_id: str) -> int:
        for i, s in enumerate(self._streams):
            if s.id == stream_id:
                return i
        raise StreamNotFoundError(
            f"Stream {stream_id} not found", stream_id=stream_id,
        )

    def _replace(self, stream_id: str, fn: Callable[[StreamRow], StreamRow]) -> StreamRow:
        with self._lock:
            i = self._index_of(stream_id)
            nxt = fn(self._streams[i])
            self._streams[i] = nxt
            return nxt

    def _streams_changed(self) -> None:
        self._stats.total_streams = len(self._streams)
        update_session_streams(len(self._streams))

    # ------------------------------------------------------------------
    # Stream operations
    # ------------------------------------------------------------------

    def add_stream(self, thermal: Union[ThermalKind, str]) -> StreamRow:
        """Append a default stream named after its ordinal within ``thermal``.

        Raises:
            StreamSpecException: If the session already holds ``max_streams``.
        """
        thermal = ThermalKind(thermal)
        with self._lock:
            if len(self._streams) >= self.config.max_streams:
                raise StreamSpecException(
                    f"Session already holds {len(self._streams)} streams",
                    context={"max_streams": self.config.max_streams},
                )
            n = sum(1 for s in self._streams if s.thermal == thermal) + 1
            stream = make_default_stream(n, thermal)
            self._streams.append(stream)
            self._stats.streams_added += 1
            self._streams_changed()
        logger.info("Added %s stream %s (%s)", thermal.value, stream.name, stream.id)
        return stream

    def get_stream(self, stream_id: str) -> StreamRow:
        """Return the stream with ``stream_id``.

        Raises:
            StreamNotFoundError: If no such stream exists.
        """
        with self._lock:
            return self._streams[self._index_of(stream_id)]

    def update_stream(self, stream_id: str, stream: StreamRow) -> StreamRow:
        """Replace a stream record wholesale; the id is preserved."""
        nxt = stream.model_copy(deep=True, update={"id": stream_id})
        return self._replace(stream_id, lambda _: nxt)

    def delete_stream(self, stream_id: str) -> StreamRow:
        """Remove a stream and return it."""
        with self._lock:
            removed = self._streams.pop(self._index_of(stream_id))
            self._stats.streams_removed += 1
            self._streams_changed()
        logger.info("Deleted stream %s (%s)", removed.name, removed.id)
        return removed

    def duplicate_stream(self, stream_id: str) -> StreamRow:
        """Append a copy of a stream under a new id and a ``_copy`` name."""
        with self._lock:
            copy = duplicate_stream(self._streams[self._index_of(stream_id)])
            self._streams.append(copy)
            self._stats.streams_added += 1
            self._streams_changed()
        logger.info("Duplicated stream %s as %s", stream_id, copy.id)
        return copy

    def move_stream(self, from_index: int, to_index: int) -> List[StreamRow]:
        """Move the stream at ``from_index`` to ``to_index``.

        Raises:
            IndexError: If either index is out of range.
        """
        with self._lock:
            n = len(self._streams)
            if not (0 <= from_index < n and 0 <= to_index < n):
                raise IndexError(f"move {from_index} -> {to_index} out of range for {n} streams")
            item = self._streams.pop(from_index)
            self._streams.insert(to_index, item)
            return list(self._streams)

    def change_kind(self, stream_id: str, kind: Union[StreamKind, str]) -> StreamRow:
        """Switch a stream's kind and canonicalize its fields."""
        kind = StreamKind(kind)
        nxt = self._replace(stream_id, lambda s: apply_kind_canonicalization(s, kind))
        with self._lock:
            self._stats.kind_changes += 1
        return nxt

    def set_field(self, stream_id: str, label: str, spec: ScalarSpec) -> StreamRow:
        """Replace the Scalar Spec under ``label``, honouring kind-locked modes."""
        self._check_label(label)
        return self._replace(stream_id, lambda s: apply_spec_update(s, label, spec))

    def set_field_mode(
        self, stream_id: str, label: str, mode: Union[ScalarMode, str],
    ) -> StreamRow:
        """Switch the Scalar Spec under ``label`` to ``mode``.

        A mode the stream's kind locks is kept; for isothermal kinds a
        change of ``Tin`` is mirrored onto ``Tout``.
        """
        self._check_label(label)
        mode = ScalarMode(mode)
        return self._replace(
            stream_id,
            lambda s: apply_spec_update(s, label, set_mode(s.scalar(label), mode)),
        )

    def toggle_field_mode(self, stream_id: str, label: str) -> StreamRow:
        """Flip the Scalar Spec under ``label`` between fixed and range."""
        self._check_label(label)
        return self._replace(
            stream_id,
            lambda s: apply_spec_update(s, label, toggle_mode(s.scalar(label))),
        )

    @staticmethod
    def _check_label(label: str) -> None:
        if label not in SCALAR_FIELDS:
            raise ValueError(
                f"Unknown scalar field {label!r}; expected one of {list(SCALAR_FIELDS)}"
            )

    # ------------------------------------------------------------------
    # Interval configuration
    # ------------------------------------------------------------------

    def set_intervals_config(self, cfg: IntervalsConfig) -> IntervalsConfig:
        """Replace the interval configuration."""
        with self._lock:
            self._intervals_config = cfg.model_copy(deep=True)
            return self._intervals_config

    def add_forbidden_match(
        self,
        hot: str = "",
        cold: str = "",
        q_lb: str = "0",
        q_ub: str = "0",
    ) -> ForbiddenMatch:
        """Append a forbidden/constrained match row (a forbid by default)."""
        row = new_forbidden_match(hot, cold, q_lb, q_ub)
        with self._lock:
            rows = list(self._intervals_config.forbidden_match) + [row]
            self._intervals_config = self._intervals_config.model_copy(
                update={"forbidden_match": rows},
            )
        return row

    def remove_forbidden_match(self, row_id: str) -> None:
        """Remove a forbidden-match row by id.

        Raises:
            KeyError: If no row has ``row_id``.
        """
        with self._lock:
            rows = self._intervals_config.forbidden_match
            kept = [r for r in rows if r.id != row_id]
            if len(kept) == len(rows):
                raise KeyError(row_id)
            self._intervals_config = self._intervals_config.model_copy(
                update={"forbidden_match": kept},
            )

    # ------------------------------------------------------------------
    # Validation and payload
    # ------------------------------------------------------------------

    def validate(self) -> List[Issue]:
        """Validate the session and remember the result."""
        with self._lock:
            streams = list(self._streams)
            cfg = self._intervals_config
        issues = self.validator.validate_all(streams, cfg)
        errors, warnings = count_by_level(issues)
        with self._lock:
            self._issues = issues
            self._stats.validation_runs += 1
            self._stats.last_error_count = errors
            self._stats.last_warning_count = warnings
        return issues

    def build_payload(self) -> PayloadSI:
        """Validate, then build the SI payload.

        Returns:
            PayloadSI for the current session.

        Raises:
            PayloadBlockedError: If validation reports any error, including
                unknown unit labels under strict units.
        """
        issues = self.validate()
        blocking = [i for i in issues if i.is_blocking]
        if blocking:
            with self._lock:
                self._stats.payloads_blocked += 1
            record_payload_blocked()
            logger.warning("Payload blocked by %d validation error(s)", len(blocking))
            raise PayloadBlockedError(
                f"Fix {len(blocking)} blocking issue(s) before building",
                issues=blocking,
            )

        with self._lock:
            streams = list(self._streams)
            cfg = self._intervals_config
        payload = self.builder.build(streams, cfg)

        with self._lock:
            self._stats.payloads_built += 1
        record_payload_built()
        if self.config.enable_provenance:
            self.provenance.record(
                "payload", "session", "payload_built", compute_hash(payload.to_wire()),
            )
        logger.info("Built SI payload for %d streams", len(streams))
        return payload

    # ------------------------------------------------------------------
    # Streamsets
    # ------------------------------------------------------------------

    def save_streamset(
        self,
        name: Optional[str] = None,
        path: Optional[Union[str, Path]] = None,
    ) -> Streamset:
        """Snapshot the session as a streamset, writing it when ``path`` is given."""
        with self._lock:
            streamset = new_streamset(self._streams, self._intervals_config, name)
        try:
            if path is not None:
                write_streamset(streamset, path)
        except OSError:
            record_streamset_operation("save", "failure")
            raise
        record_streamset_operation("save", "success")
        with self._lock:
            self._stats.streamsets_saved += 1
        if self.config.enable_provenance:
            self.provenance.record(
                "streamset", streamset.name, "streamset_saved", compute_hash(streamset),
            )
        logger.info("Saved streamset %r (%d streams)", streamset.name, len(streamset.streams))
        return streamset

    def load_streamset(self, source: Union[str, bytes, Path]) -> Streamset:
        """Replace the session with a loaded streamset.

        Raises:
            StreamsetFormatError: If the streamset cannot be read.
        """
        try:
            streamset = load_streamset(source)
        except StreamSpecException:
            record_streamset_operation("load", "failure")
            raise
        with self._lock:
            self._streams = [s.model_copy(deep=True) for s in streamset.streams]
            self._intervals_config = streamset.intervals_config.model_copy(deep=True)
            self._issues = []
            self._stats.streamsets_loaded += 1
            self._streams_changed()
        record_streamset_operation("load", "success")
        if self.config.enable_provenance:
            self.provenance.record(
                "streamset", streamset.name, "streamset_loaded", compute_hash(streamset),
            )
        logger.info("Loaded streamset %r (%d streams)", streamset.name, len(streamset.streams))
        return streamset

    # ------------------------------------------------------------------
    # Solver results
    # ------------------------------------------------------------------

    def accept_solve_response(self, body: Any, http_ok: bool = True) -> SolveResult:
        """Parse a solve response and invalidate the detail caches.

        Raises:
            SolverResponseError: If the body reports failure.
        """
        result = parse_solve_response(body, http_ok)
        self.match_details.clear()
        self.stream_details.clear()
        with self._lock:
            self._last_solve = result
            self._stats.solves_recorded += 1
        return result

    def match_detail(
        self,
        hot: str,
        cold: str,
        fetch: Callable[[Tuple[str, str]], DetailMatrix],
    ) -> DetailMatrix:
        """Return the detail matrix of ``(hot, cold)``, fetching on a miss."""
        return self.match_details.get_or_fetch((hot, cold), fetch)

    def stream_detail(
        self,
        name: str,
        unit: str,
        fetch: Callable[[Tuple[str, str]], StreamDetail],
    ) -> StreamDetail:
        """Return the detail of stream ``name`` in ``unit``, fetching on a miss."""
        return self.stream_details.get_or_fetch((name, unit), fetch)

    # ------------------------------------------------------------------
    # Statistics and metrics
    # ------------------------------------------------------------------

    def get_statistics(self) -> StreamSpecStatistics:
        """Return a copy of the aggregated statistics."""
        with self._lock:
            return self._stats.model_copy()

    def get_provenance(self) -> ProvenanceTracker:
        """Return the ProvenanceTracker used by this service."""
        return self.provenance

    def get_metrics(self) -> Dict[str, Any]:
        """Return a metrics summary of the service and its engines."""
        stats = self.get_statistics()
        return {
            "started": self._started,
            "total_streams": stats.total_streams,
            "validation_runs": stats.validation_runs,
            "payloads_built": stats.payloads_built,
            "payloads_blocked": stats.payloads_blocked,
            "validator": self.validator.get_statistics(),
            "converter": self.converter.get_statistics(),
            "match_details": self.match_details.get_statistics(),
            "stream_details": self.stream_details.get_statistics(),
            "provenance_entries": self.provenance.entry_count,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Start the service and apply the configured log level.

        Safe to call multiple times.
        """
        if self._started:
            logger.debug("StreamSpecService already started; skipping")
            return

        logging.getLogger("energy_integration").setLevel(self.config.log_level.upper())
        with self._lock:
            update_session_streams(len(self._streams))
        self._started = True
        logger.info("StreamSpecService startup complete")

    def shutdown(self) -> None:
        """Shut the service down and drop cached detail lookups."""
        if not self._started:
            return

        self.match_details.clear()
        self.stream_details.clear()
        self._started = False
        logger.info("StreamSpecService shut down")


# ===================================================================
# Thread-safe singleton access
# ===================================================================


def get_service() -> StreamSpecService:
    """Get or create the singleton StreamSpecService instance."""
    global _singleton_instance
    if _singleton_instance is None:
        with _singleton_lock:
            if _singleton_instance is None:
                _singleton_instance = StreamSpecService()
    return _singleton_instance


# ===================================================================
# Application integration
# ===================================================================


async def configure_stream_spec(
    app: Any,
    config: Optional[StreamSpecConfig] = None,
) -> StreamSpecService:
    """Configure the stream specification service on an application.

    Creates the StreamSpecService, stores it in ``app.state`` and as the
    process singleton, and starts it.

    Args:
        app: Application instance exposing a ``state`` namespace.
        config: Optional service config.

    Returns:
        StreamSpecService instance.
    """
    global _singleton_instance

    service = StreamSpecService(config=config)

    with _singleton_lock:
        _singleton_instance = service

    app.state.stream_spec_service = service
    service.startup()

    logger.info("Stream specification service configured on app")
    return service


def get_stream_spec(app: Any) -> StreamSpecService:
    """Get the StreamSpecService instance from app state.

    Raises:
        RuntimeError: If the service has not been configured.
    """
    service = getattr(app.state, "stream_spec_service", None)
    if service is None:
        raise RuntimeError(
            "Stream specification service not configured. "
            "Call configure_stream_spec(app) first."
        )
    return service


__all__ = [
    "StreamSpecService",
    "StreamSpecStatistics",
    "get_service",
    "configure_stream_spec",
    "get_stream_spec",
]
