# -*- coding: utf-8 -*-
"""
Streamset persistence.

A streamset is the saved editing state of one session: the editable
(original-unit, text-valued) streams plus the interval configuration,
tagged with a schema version::

    {
      "schema_version": "ei-stream-ui-v1",
      "name": "...",
      "streams": [...],
      "intervals_config": {...}
    }

Loading is lenient in the same way the editor is: the interval
configuration is rebuilt field by field and anything missing or mistyped
falls back to its default. Only a non-list ``streams`` (or a stream record
that cannot be read at all) is rejected.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from energy_integration.exceptions import StreamsetFormatError
from energy_integration.stream_spec.config import get_config
from energy_integration.stream_spec.models import (
    ForbiddenMatch,
    IntervalsConfig,
    MVRConfig,
    MVRMethod,
    NodeRule,
    StreamRow,
    TGridMethod,
    default_intervals_config,
)

logger = logging.getLogger(__name__)

__all__ = [
    "SCHEMA_VERSION",
    "Streamset",
    "default_streamset_name",
    "normalize_intervals_config",
    "dump_streamset",
    "load_streamset",
    "read_streamset",
    "write_streamset",
    "new_streamset",
]

SCHEMA_VERSION = "ei-stream-ui-v1"

StreamsetSource = Union[str, bytes, Path]


class Streamset(BaseModel):
    """Saved session state."""

    schema_version: str = Field(default=SCHEMA_VERSION)
    name: str = Field(default="")
    streams: List[StreamRow] = Field(default_factory=list)
    intervals_config: IntervalsConfig = Field(default_factory=default_intervals_config)


def default_streamset_name() -> str:
    """Return ``streamset-<UTC ISO timestamp>``."""
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return f"streamset-{stamp.replace('+00:00', 'Z')}"


# ---------------------------------------------------------------------------
# Lenient configuration loading
# ---------------------------------------------------------------------------


def _text(v: Any, default: str) -> str:
    if isinstance(v, str):
        return v
    if v is None:
        return default
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (int, float)):
        return str(v)
    return default


def _choice(v: Any, allowed: type, default: Any) -> Any:
    values = {m.value for m in allowed}
    return v if isinstance(v, str) and v in values else default


def normalize_intervals_config(raw: Any) -> IntervalsConfig:
    """Rebuild an IntervalsConfig from arbitrary loaded JSON.

    Args:
        raw: Decoded ``intervals_config`` value (possibly missing or wrong).

    Returns:
        A complete configuration; unknown or mistyped entries take defaults.
    """
    base = default_intervals_config()
    if not isinstance(raw, dict):
        return base

    rows: List[ForbiddenMatch] = []
    raw_rows = raw.get("forbidden_match")
    if isinstance(raw_rows, list):
        for r in raw_rows:
            r = r if isinstance(r, dict) else {}
            fields: Dict[str, Any] = {
                "hot": r.get("hot") if isinstance(r.get("hot"), str) else "",
                "cold": r.get("cold") if isinstance(r.get("cold"), str) else "",
                "q_lb": _text(r.get("Q_lb"), ""),
                "q_ub": _text(r.get("Q_ub"), ""),
            }
            if isinstance(r.get("id"), str):
                fields["id"] = r["id"]
            rows.append(ForbiddenMatch(**fields))

    raw_mvr = raw.get("mvr_config")
    raw_mvr = raw_mvr if isinstance(raw_mvr, dict) else {}
    mvr_base = base.mvr_config
    mvr = MVRConfig(
        method=_choice(raw_mvr.get("method"), MVRMethod, mvr_base.method),
        mode=raw_mvr["mode"] if isinstance(raw_mvr.get("mode"), str) else mvr_base.mode,
        step_ratio=_text(raw_mvr.get("step_ratio"), mvr_base.step_ratio),
        isentropic_efficiency=_text(
            raw_mvr.get("isentropic_efficiency"), mvr_base.isentropic_efficiency,
        ),
        polytropic_efficiency=_text(
            raw_mvr.get("polytropic_efficiency"), mvr_base.polytropic_efficiency,
        ),
        mechanical_efficiency=_text(
            raw_mvr.get("mechanical_efficiency"), mvr_base.mechanical_efficiency,
        ),
    )

    nodes = raw.get("T_nodes_specified_text")
    use_clapeyron = raw.get("use_clapeyron")
    return IntervalsConfig(
        forbidden_match=rows,
        node_rule=_choice(raw.get("node_rule"), NodeRule, base.node_rule),
        t_interval_method=_choice(
            raw.get("T_interval_method"), TGridMethod, base.t_interval_method,
        ),
        t_nodes_specified_text=nodes if isinstance(nodes, str) else base.t_nodes_specified_text,
        max_delta_t=_text(raw.get("maxDeltaT"), base.max_delta_t),
        max_num_t=_text(raw.get("maxnumT"), base.max_num_t),
        mvr_config=mvr,
        use_clapeyron=base.use_clapeyron if use_clapeyron is None else bool(use_clapeyron),
    )


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def dump_streamset(streamset: Streamset) -> str:
    """Serialize a streamset as indented JSON, unit labels kept verbatim."""
    data = streamset.model_dump(mode="json", by_alias=True)
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def load_streamset(source: StreamsetSource) -> Streamset:
    """Parse a streamset from JSON text, UTF-8 bytes or a file path.

    Args:
        source: JSON ``str``, ``bytes``, or a ``Path`` to read.

    Returns:
        The loaded Streamset.

    Raises:
        StreamsetFormatError: If the document is not JSON, is not an
            object, or its ``streams`` entry is not a list of stream records.
    """
    label = str(source) if isinstance(source, Path) else "<text>"
    try:
        if isinstance(source, Path):
            text = source.read_text(encoding="utf-8")
        elif isinstance(source, bytes):
            text = source.decode("utf-8")
        else:
            text = source
    except UnicodeDecodeError as exc:
        raise StreamsetFormatError(
            f"Streamset is not valid UTF-8: {exc.reason} at byte {exc.start}",
            source=label,
        ) from exc
    except OSError as exc:
        raise StreamsetFormatError(
            f"Cannot read streamset: {exc}", source=label,
        ) from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise StreamsetFormatError(
            f"Streamset is not valid JSON: {exc.msg}", source=label,
        ) from exc

    if not isinstance(data, dict):
        raise StreamsetFormatError("Invalid streamset file.", source=label)
    streams = data.get("streams")
    if not isinstance(streams, list):
        raise StreamsetFormatError(
            "Invalid streamset file.",
            context={"reason": "streams must be a list"},
            source=label,
        )

    expected = get_config().schema_version
    version = data.get("schema_version")
    if version != expected:
        logger.warning(
            "Streamset %s has schema_version %r (expected %r); loading anyway",
            label, version, expected,
        )

    try:
        rows = [StreamRow.model_validate(s) for s in streams]
    except ValidationError as exc:
        raise StreamsetFormatError(
            f"Invalid stream record: {exc.error_count()} error(s)",
            context={"errors": exc.errors(include_url=False)},
            source=label,
        ) from exc

    name = data.get("name")
    return Streamset(
        schema_version=version if isinstance(version, str) else expected,
        name=name if isinstance(name, str) else "",
        streams=rows,
        intervals_config=normalize_intervals_config(data.get("intervals_config")),
    )


def read_streamset(path: Union[str, Path]) -> Streamset:
    """Load a streamset from a file."""
    return load_streamset(Path(path))


def write_streamset(streamset: Streamset, path: Union[str, Path]) -> Path:
    """Write a streamset to ``path`` and return the path written."""
    target = Path(path)
    target.write_text(dump_streamset(streamset), encoding="utf-8")
    logger.info(
        "Wrote streamset %r (%d streams) to %s",
        streamset.name, len(streamset.streams), target,
    )
    return target


def new_streamset(
    streams: List[StreamRow],
    intervals_config: IntervalsConfig,
    name: Optional[str] = None,
) -> Streamset:
    """Snapshot session state into a Streamset under the configured version."""
    return Streamset(
        schema_version=get_config().schema_version,
        name=name or default_streamset_name(),
        streams=[s.model_copy(deep=True) for s in streams],
        intervals_config=intervals_config.model_copy(deep=True),
    )
