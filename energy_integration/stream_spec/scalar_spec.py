# -*- coding: utf-8 -*-
"""
Scalar Spec operations.

Mode switching and isothermal mirroring for user-entered quantities. All
functions return a new ScalarSpec and leave their input untouched.

Mode migration keeps as much of the user's text as it can:

- fixed -> range: ``lo`` and ``hi`` keep their own text if present,
  otherwise both are seeded from ``value`` (a collapsed interval).
- range -> fixed: ``value`` becomes ``value`` else ``lo`` else ``hi``.

Switching to the current mode is a no-op, so ``set_mode`` is idempotent.
"""

from __future__ import annotations

from energy_integration.stream_spec.models import ScalarMode, ScalarSpec

__all__ = ["set_mode", "toggle_mode", "mirror"]


def set_mode(spec: ScalarSpec, mode: ScalarMode) -> ScalarSpec:
    """Return ``spec`` switched to ``mode``.

    Args:
        spec: Spec to migrate.
        mode: Target mode.

    Returns:
        ``spec`` itself when already in ``mode``; otherwise a migrated copy.
    """
    mode = ScalarMode(mode)
    if spec.mode == mode:
        return spec
    if mode == ScalarMode.FIXED:
        value = spec.value or spec.lo or spec.hi or ""
        return spec.model_copy(
            update={"mode": ScalarMode.FIXED, "value": value, "lo": "", "hi": ""},
        )
    lo = spec.lo or spec.value or ""
    hi = spec.hi or spec.value or ""
    return spec.model_copy(
        update={"mode": ScalarMode.RANGE, "value": "", "lo": lo, "hi": hi},
    )


def toggle_mode(spec: ScalarSpec) -> ScalarSpec:
    """Flip fixed <-> range."""
    if spec.mode == ScalarMode.FIXED:
        return set_mode(spec, ScalarMode.RANGE)
    return set_mode(spec, ScalarMode.FIXED)


def mirror(source: ScalarSpec, target: ScalarSpec) -> ScalarSpec:
    """Copy ``source``'s mode, unit and active text onto ``target``.

    Used for isothermal streams so that ``Tout`` equals ``Tin`` string for
    string. The inactive fields of the result are cleared.
    """
    if source.mode == ScalarMode.FIXED:
        return target.model_copy(
            update={
                "mode": ScalarMode.FIXED,
                "unit": source.unit,
                "value": source.value,
                "lo": "",
                "hi": "",
            },
        )
    return target.model_copy(
        update={
            "mode": ScalarMode.RANGE,
            "unit": source.unit,
            "value": "",
            "lo": source.lo,
            "hi": source.hi,
        },
    )
