# -*- coding: utf-8 -*-
"""
Stream Kind State Machine

A kind change immediately canonicalizes the stream record so that its
fields satisfy the structural requirements of the downstream model:

    IsothermalFixed     Tin, Tout fixed; Tout mirrors Tin
    IsothermalVariable  Tin, Tout range; Tout mirrors Tin
    MVR                 F fixed (compressor handles a fixed molar flow),
                        Pin range (inlet pressure optimized over a band)
    Common, MHP, RankineCycle
                        free-form, no forced change

Canonicalization happens only at the transition. Later edits can break
these constraints again, which is why the validation engine re-checks them.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Mapping

from energy_integration.stream_spec.metrics import record_kind_transition
from energy_integration.stream_spec.models import (
    SCALAR_FIELDS,
    ScalarMode,
    ScalarSpec,
    StreamKind,
    StreamRow,
)
from energy_integration.stream_spec.scalar_spec import mirror, set_mode

logger = logging.getLogger(__name__)

__all__ = [
    "KIND_FORCED_MODES",
    "apply_kind_canonicalization",
    "sync_isothermal",
    "force_mode",
    "apply_spec_update",
]


# Scalar fields (by attribute) whose mode a kind forces on transition.
KIND_FORCED_MODES: Mapping[StreamKind, Dict[str, ScalarMode]] = {
    StreamKind.COMMON: {},
    StreamKind.ISOTHERMAL_FIXED: {
        "t_in": ScalarMode.FIXED,
        "t_out": ScalarMode.FIXED,
    },
    StreamKind.ISOTHERMAL_VARIABLE: {
        "t_in": ScalarMode.RANGE,
        "t_out": ScalarMode.RANGE,
    },
    StreamKind.MVR: {
        "flow": ScalarMode.FIXED,
        "p_in": ScalarMode.RANGE,
    },
    StreamKind.MHP: {},
    StreamKind.RANKINE_CYCLE: {},
}


def _force_modes(stream: StreamRow, kind: StreamKind) -> StreamRow:
    update = {
        attr: set_mode(getattr(stream, attr), mode)
        for attr, mode in KIND_FORCED_MODES[kind].items()
    }
    return stream.model_copy(update=update) if update else stream


def _isothermal(stream: StreamRow, kind: StreamKind) -> StreamRow:
    stream = _force_modes(stream, kind)
    return stream.model_copy(
        update={"t_out": mirror(stream.t_in, stream.t_out)},
    )


def _free_form(stream: StreamRow, kind: StreamKind) -> StreamRow:
    return stream


_CANONICALIZERS: Dict[StreamKind, Callable[[StreamRow, StreamKind], StreamRow]] = {
    StreamKind.COMMON: _free_form,
    StreamKind.ISOTHERMAL_FIXED: _isothermal,
    StreamKind.ISOTHERMAL_VARIABLE: _isothermal,
    StreamKind.MVR: _force_modes,
    StreamKind.MHP: _free_form,
    StreamKind.RANKINE_CYCLE: _free_form,
}


def apply_kind_canonicalization(stream: StreamRow, kind: StreamKind) -> StreamRow:
    """Return a copy of ``stream`` switched to ``kind`` and canonicalized.

    Args:
        stream: Current stream record (not modified).
        kind: Target kind.

    Returns:
        New StreamRow whose fields satisfy ``kind``'s structural constraints.
    """
    kind = StreamKind(kind)
    nxt = stream.model_copy(deep=True, update={"kind": kind})
    nxt = _CANONICALIZERS[kind](nxt, kind)
    record_kind_transition(kind.value)
    logger.debug(
        "Stream %s (%s) kind %s -> %s",
        stream.id, stream.name, stream.kind.value, kind.value,
    )
    return nxt


def sync_isothermal(stream: StreamRow) -> StreamRow:
    """Re-mirror ``Tout`` from ``Tin`` for isothermal kinds.

    Called after ``Tin`` is edited; other kinds are returned unchanged.
    """
    if not stream.kind.is_isothermal:
        return stream
    return stream.model_copy(
        update={"t_out": mirror(stream.t_in, stream.t_out)},
    )


def force_mode(stream: StreamRow, attr: str, mode: ScalarMode) -> StreamRow:
    """Return ``stream`` with the Scalar Spec ``attr`` migrated to ``mode``."""
    return stream.model_copy(update={attr: set_mode(getattr(stream, attr), mode)})


# Modes a kind locks while the user edits a field (by wire label).
_EDIT_LOCKED_MODES: Mapping[StreamKind, Dict[str, ScalarMode]] = {
    StreamKind.ISOTHERMAL_FIXED: {"Tin": ScalarMode.FIXED, "Tout": ScalarMode.FIXED},
    StreamKind.ISOTHERMAL_VARIABLE: {"Tin": ScalarMode.RANGE, "Tout": ScalarMode.RANGE},
    StreamKind.MVR: {"F": ScalarMode.FIXED},
}


def apply_spec_update(stream: StreamRow, label: str, spec: ScalarSpec) -> StreamRow:
    """Return ``stream`` with the Scalar Spec under ``label`` replaced by ``spec``.

    The stream's kind still applies while editing: a locked mode is
    re-imposed on ``spec``, ``Tout`` of an isothermal stream cannot be
    edited independently, and editing ``Tin`` re-mirrors ``Tout``.

    Args:
        stream: Current stream (not modified).
        label: Wire label of the field (``F``, ``Tin``, ``Tout``, ``Pin``, ``Pout``).
        spec: New value for the field.
    """
    attr = SCALAR_FIELDS[label]
    locked = _EDIT_LOCKED_MODES.get(stream.kind, {}).get(label)
    if locked is not None:
        spec = set_mode(spec, locked)

    if stream.kind.is_isothermal:
        if label == "Tout":
            return sync_isothermal(stream)
        if label == "Tin":
            return stream.model_copy(
                update={"t_in": spec, "t_out": mirror(spec, stream.t_out)},
            )
    return stream.model_copy(update={attr: spec})
