# -*- coding: utf-8 -*-
"""
Unit Conversion Engine

Maps a (value, unit label) pair of a given physical quantity to SI:

- Temperature: K (°C, °F, °R accepted)
- Temperature delta: K
- Flow: mol/s
- Pressure: Pa
- Heat capacity: J/(mol*K)
- Latent heat: J/mol
- Heat-transfer coefficient: W/(m^2*K)

Text parsing follows one rule everywhere: empty or non-numeric text is
*absent* (``None``), never zero. Conversion of an absent value is absent.
Only decimal notation is read: hex, octal and binary literals (``"0x10"``)
are absent rather than numbers.

Unknown unit labels are treated as already-SI unless strict handling is
requested, in which case ``UnitConversionError`` is raised.

Example:
    >>> from energy_integration.stream_spec.units import to_si_flow, to_si_t
    >>> to_si_flow(1, "kmol/h")
    0.2777...
    >>> to_si_t(0, "°C")
    273.15
"""

from __future__ import annotations

import logging
import math
import re
import threading
from typing import Callable, Dict, List, Optional, Tuple, Union

from energy_integration.exceptions import UnitConversionError
from energy_integration.stream_spec.config import StreamSpecConfig, get_config
from energy_integration.stream_spec.metrics import record_unit_fallback
from energy_integration.stream_spec.models import (
    Quantity,
    ScalarMode,
    ScalarSpec,
    UnitNumber,
)

logger = logging.getLogger(__name__)

__all__ = [
    "TEMPERATURE_TO_K",
    "LINEAR_TO_SI",
    "SCALAR_FIELD_QUANTITIES",
    "UNIT_NUMBER_FIELD_QUANTITIES",
    "parse_num",
    "parse_number_list",
    "parse_frac",
    "as_fixed",
    "as_range",
    "minmax_of_spec",
    "convert",
    "is_known_unit",
    "supported_units",
    "to_si_t",
    "to_si_dt",
    "to_si_flow",
    "to_si_pressure",
    "to_si_cp",
    "to_si_hvap",
    "to_si_htc",
    "to_si_unit_number",
    "to_si_scalar_spec",
    "is_finite_si",
    "UnitConversionEngine",
]

SIScalar = Union[float, Tuple[float, float]]


# ---------------------------------------------------------------------------
# Conversion tables
# ---------------------------------------------------------------------------

# Affine temperature scales: SI = value * factor + offset
TEMPERATURE_TO_K: Dict[str, Tuple[float, float]] = {
    "K": (1.0, 0.0),
    "°C": (1.0, 273.15),
    "°F": (5.0 / 9.0, 273.15 - 32.0 * 5.0 / 9.0),
    "°R": (5.0 / 9.0, 0.0),
}

# Purely multiplicative quantities: SI = value * factor
LINEAR_TO_SI: Dict[Quantity, Dict[str, float]] = {
    Quantity.TEMPERATURE_DELTA: {
        "K": 1.0,
        "°C": 1.0,
        "°F": 5.0 / 9.0,
        "°R": 5.0 / 9.0,
    },
    Quantity.FLOW: {
        "mol/s": 1.0,
        "kmol/h": 1000.0 / 3600.0,
        "kmol/s": 1000.0,
    },
    Quantity.PRESSURE: {
        "Pa": 1.0,
        "kPa": 1e3,
        "MPa": 1e6,
        "bar": 1e5,
    },
    Quantity.HEAT_CAPACITY: {
        "J/(mol*K)": 1.0,
        "kJ/(mol*K)": 1e3,
        "MJ/(mol*K)": 1e6,
    },
    Quantity.LATENT_HEAT: {
        "J/mol": 1.0,
        "kJ/mol": 1e3,
        "MJ/mol": 1e6,
    },
    Quantity.HTC: {
        "W/(m^2*K)": 1.0,
        "kW/(m^2*K)": 1e3,
    },
}

SCALAR_FIELD_QUANTITIES: Dict[str, Quantity] = {
    "F": Quantity.FLOW,
    "Tin": Quantity.TEMPERATURE,
    "Tout": Quantity.TEMPERATURE,
    "Pin": Quantity.PRESSURE,
    "Pout": Quantity.PRESSURE,
}

# cost is passed through unconverted
UNIT_NUMBER_FIELD_QUANTITIES: Dict[str, Quantity] = {
    "Cp": Quantity.HEAT_CAPACITY,
    "Hvap": Quantity.LATENT_HEAT,
    "HTC": Quantity.HTC,
    "Tcont": Quantity.TEMPERATURE_DELTA,
    "min_TD": Quantity.TEMPERATURE_DELTA,
    "superheating_deg": Quantity.TEMPERATURE_DELTA,
    "subcooling_deg": Quantity.TEMPERATURE_DELTA,
}

_LIST_SPLIT = re.compile(r"[\s,]+")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_num(text: Union[str, float, int, None]) -> Optional[float]:
    """Parse user text into a finite float.

    Args:
        text: Raw field text (numbers are passed through).

    Returns:
        The number, or None when the text is empty, non-numeric or not finite.
    """
    if text is None or isinstance(text, bool):
        return None
    if isinstance(text, (int, float)):
        v = float(text)
        return v if math.isfinite(v) else None
    t = str(text).strip()
    if not t or "_" in t:
        return None
    try:
        v = float(t)
    except ValueError:
        return None
    return v if math.isfinite(v) else None


def parse_number_list(text: str) -> List[float]:
    """Parse a comma/whitespace separated list, dropping non-numeric tokens."""
    t = (text or "").strip()
    if not t:
        return []
    values = (parse_num(tok) for tok in _LIST_SPLIT.split(t))
    return [v for v in values if v is not None]


def parse_frac(text: str) -> List[float]:
    """Parse a comma separated fraction list, dropping non-numeric entries."""
    t = (text or "").strip()
    if not t:
        return []
    values = (parse_num(tok) for tok in t.split(","))
    return [v for v in values if v is not None]


def as_fixed(spec: ScalarSpec) -> Optional[float]:
    """Numeric fixed value of a spec, or None if not fixed or not parseable."""
    if spec.mode != ScalarMode.FIXED:
        return None
    return parse_num(spec.value)


def as_range(spec: ScalarSpec) -> Optional[Tuple[float, float]]:
    """Numeric ``(lo, hi)`` of a range spec, in entry order, or None."""
    if spec.mode != ScalarMode.RANGE:
        return None
    lo = parse_num(spec.lo)
    hi = parse_num(spec.hi)
    if lo is None or hi is None:
        return None
    return lo, hi


def minmax_of_spec(spec: ScalarSpec) -> Optional[Tuple[float, float]]:
    """Resolve a spec to ``(min, max)``; a fixed value gives ``(v, v)``."""
    if spec.mode == ScalarMode.FIXED:
        v = as_fixed(spec)
        if v is None:
            return None
        return v, v
    r = as_range(spec)
    if r is None:
        return None
    return min(r), max(r)


# ---------------------------------------------------------------------------
# Scalar conversion
# ---------------------------------------------------------------------------


def is_known_unit(quantity: Quantity, unit: str) -> bool:
    """Return True when ``unit`` is a recognised label for ``quantity``."""
    quantity = Quantity(quantity)
    if quantity == Quantity.TEMPERATURE:
        return unit in TEMPERATURE_TO_K
    return unit in LINEAR_TO_SI[quantity]


def supported_units(quantity: Optional[Quantity] = None) -> Dict[str, List[str]]:
    """List recognised unit labels, optionally for a single quantity."""
    tables: Dict[str, List[str]] = {
        Quantity.TEMPERATURE.value: list(TEMPERATURE_TO_K),
    }
    for q, table in LINEAR_TO_SI.items():
        tables[q.value] = list(table)
    if quantity is not None:
        key = Quantity(quantity).value
        return {key: tables[key]}
    return tables


def convert(
    quantity: Quantity,
    value: float,
    unit: str,
    strict: bool = False,
) -> float:
    """Convert one number to SI.

    Args:
        quantity: Quantity family of the value.
        value: Number in ``unit``.
        unit: Unit label.
        strict: Raise on unknown labels instead of passing the value through.

    Returns:
        The SI value.

    Raises:
        UnitConversionError: If strict and the label is unknown.
    """
    quantity = Quantity(quantity)
    if quantity == Quantity.TEMPERATURE:
        scale = TEMPERATURE_TO_K.get(unit)
        if scale is not None:
            factor, offset = scale
            return value * factor + offset
    else:
        factor = LINEAR_TO_SI[quantity].get(unit)
        if factor is not None:
            return value * factor

    if strict:
        raise UnitConversionError(
            f"Unknown {quantity.value} unit: {unit!r}",
            quantity=quantity.value,
            unit=unit,
        )
    logger.debug(
        "Unknown %s unit %r; treating value as SI", quantity.value, unit,
    )
    return value


def to_si_t(v: float, unit: str) -> float:
    """Temperature to K."""
    return convert(Quantity.TEMPERATURE, v, unit)


def to_si_dt(v: float, unit: str) -> float:
    """Temperature delta to K."""
    return convert(Quantity.TEMPERATURE_DELTA, v, unit)


def to_si_flow(v: float, unit: str) -> float:
    """Molar flow to mol/s."""
    return convert(Quantity.FLOW, v, unit)


def to_si_pressure(v: float, unit: str) -> float:
    """Pressure to Pa."""
    return convert(Quantity.PRESSURE, v, unit)


def to_si_cp(v: float, unit: str) -> float:
    """Molar heat capacity to J/(mol*K)."""
    return convert(Quantity.HEAT_CAPACITY, v, unit)


def to_si_hvap(v: float, unit: str) -> float:
    """Molar latent heat to J/mol."""
    return convert(Quantity.LATENT_HEAT, v, unit)


def to_si_htc(v: float, unit: str) -> float:
    """Heat-transfer coefficient to W/(m^2*K)."""
    return convert(Quantity.HTC, v, unit)


# ---------------------------------------------------------------------------
# Composite conversion
# ---------------------------------------------------------------------------


def to_si_unit_number(
    u: UnitNumber,
    conv: Callable[[float, str], float],
) -> Optional[float]:
    """Convert a unit-tagged number with ``conv``; None when not parseable."""
    v = parse_num(u.value)
    if v is None:
        return None
    return conv(v, u.unit)


def to_si_scalar_spec(
    spec: ScalarSpec,
    quantity: Quantity,
    strict: bool = False,
) -> Optional[SIScalar]:
    """Convert a Scalar Spec to an SI number (fixed) or ``(lo, hi)`` (range).

    Range bounds are converted independently and keep their entry order.

    Returns:
        SI value, SI pair, or None when the active fields do not parse.
    """
    if spec.mode == ScalarMode.FIXED:
        v = as_fixed(spec)
        if v is None:
            return None
        return convert(quantity, v, spec.unit, strict)
    r = as_range(spec)
    if r is None:
        return None
    return (
        convert(quantity, r[0], spec.unit, strict),
        convert(quantity, r[1], spec.unit, strict),
    )


def is_finite_si(value: Optional[SIScalar]) -> bool:
    """True when a converted value (or both range bounds) is finite."""
    if value is None:
        return True
    if isinstance(value, tuple):
        return all(math.isfinite(v) for v in value)
    return math.isfinite(value)


# ---------------------------------------------------------------------------
# UnitConversionEngine
# ---------------------------------------------------------------------------


class UnitConversionEngine:
    """Configured unit converter used by the payload builder.

    Wraps the pure conversion functions with the configured unknown-unit
    policy and counts pass-through fallbacks.

    Attributes:
        strict: Raise on unknown unit labels.

    Example:
        >>> engine = UnitConversionEngine()
        >>> engine.to_si(150, "°C", Quantity.TEMPERATURE)
        423.15
    """

    def __init__(self, config: Optional[StreamSpecConfig] = None) -> None:
        """Initialise UnitConversionEngine.

        Args:
            config: Optional configuration. Uses global config if None.
        """
        self.config = config or get_config()
        self.strict: bool = self.config.strict_units
        self._lock = threading.Lock()
        self._stats: Dict[str, int] = {
            "conversions": 0,
            "unknown_unit_fallbacks": 0,
            "overflows": 0,
        }
        logger.info("UnitConversionEngine initialised: strict=%s", self.strict)

    def _check(self, quantity: Quantity, unit: str) -> None:
        if is_known_unit(quantity, unit):
            return
        if self.strict:
            raise UnitConversionError(
                f"Unknown {Quantity(quantity).value} unit: {unit!r}",
                quantity=Quantity(quantity).value,
                unit=unit,
            )
        with self._lock:
            self._stats["unknown_unit_fallbacks"] += 1
        record_unit_fallback(Quantity(quantity).value)

    def to_si(self, value: float, unit: str, quantity: Quantity) -> float:
        """Convert one number to SI under the configured policy."""
        self._check(quantity, unit)
        with self._lock:
            self._stats["conversions"] += 1
        return convert(quantity, value, unit)

    def unit_number_to_si(
        self, u: UnitNumber, quantity: Quantity,
    ) -> Optional[float]:
        """Convert a unit-tagged number; None when its text does not parse."""
        v = parse_num(u.value)
        if v is None:
            return None
        si = self.to_si(v, u.unit, quantity)
        return si if math.isfinite(si) else self._overflow(quantity)

    def scalar_spec_to_si(
        self, spec: ScalarSpec, quantity: Quantity,
    ) -> Optional[SIScalar]:
        """Convert a Scalar Spec; None when its active fields do not parse."""
        if minmax_of_spec(spec) is None:
            return None
        self._check(quantity, spec.unit)
        with self._lock:
            self._stats["conversions"] += 1
        si = to_si_scalar_spec(spec, quantity)
        if not is_finite_si(si):
            return self._overflow(quantity)
        return si

    def _overflow(self, quantity: Quantity) -> None:
        with self._lock:
            self._stats["overflows"] += 1
        logger.warning(
            "%s value overflows in SI; treating it as absent", Quantity(quantity).value,
        )
        return None

    def get_statistics(self) -> Dict[str, int]:
        """Return a snapshot of conversion counters."""
        with self._lock:
            return dict(self._stats)
