# -*- coding: utf-8 -*-
"""
Stream Specification Data Models

Pydantic v2 data models for the stream specification engine: the editable
(original-unit, text-valued) stream model, the process-wide interval/grid
configuration, validation diagnostics, and the SI payload sent to the
external HEN solver.

Python attributes are snake_case; the key names used on the wire and in
saved streamsets (``F``, ``Tin``, ``fracText``, ``maxDeltaT``, ...) are
field aliases. Models accept either spelling and serialize by alias.

Enumerations:
    - ThermalKind, StreamKind, PricingBasis, ScalarMode
    - NodeRule, TGridMethod, MVRMethod
    - IssueLevel, Quantity

Editable Models:
    - ScalarSpec, UnitNumber, StreamRow
    - ForbiddenMatch, MVRConfig, IntervalsConfig

Diagnostics:
    - Issue

SI Payload Models:
    - StreamPayloadSI, ForbiddenMatchPayloadSI, MVRConfigPayloadSI
    - IntervalsConfigPayloadSI, PayloadSI
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _new_id() -> str:
    """Return a fresh process-unique identifier."""
    return str(uuid.uuid4())


def _as_text(v: Any) -> Any:
    """Coerce JSON numbers to their text form; leave other values alone."""
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return str(v)
    if v is None:
        return ""
    return v


# =============================================================================
# Enumerations
# =============================================================================


class ThermalKind(str, Enum):
    """Direction of heat transfer for a process stream."""

    HOT = "hot"
    COLD = "cold"


class StreamKind(str, Enum):
    """Structural category of a stream.

    The kind decides which fields are forced fixed or ranged on transition
    and which auxiliary properties validation requires.
    """

    COMMON = "Common"
    ISOTHERMAL_FIXED = "IsothermalFixed"
    ISOTHERMAL_VARIABLE = "IsothermalVariable"
    MVR = "MVR"
    MHP = "MHP"
    RANKINE_CYCLE = "RankineCycle"

    @property
    def is_isothermal(self) -> bool:
        return self in (StreamKind.ISOTHERMAL_FIXED, StreamKind.ISOTHERMAL_VARIABLE)


class PricingBasis(str, Enum):
    """Basis on which a stream's cost figure is charged."""

    ENERGY = "Energy"
    POWER = "Power"


class ScalarMode(str, Enum):
    """Whether a Scalar Spec holds a single value or a closed interval."""

    FIXED = "fixed"
    RANGE = "range"


class NodeRule(str, Enum):
    """Temperature-node generation rule."""

    INLET = "inlet"
    INOUT = "inout"
    CUSTOM = "custom"


class TGridMethod(str, Enum):
    """Temperature-interval refinement method."""

    DEFAULT = "default"
    LIMIT_SPAN = "limit_span"
    CAP_COUNT = "cap_count"
    BOTH = "both"


class MVRMethod(str, Enum):
    """Compressor (MVR) model formulation."""

    GDP = "gdp"
    PIECEWISE = "piecewise"


class IssueLevel(str, Enum):
    """Diagnostic severity. Only ``error`` blocks build/solve."""

    ERROR = "error"
    WARN = "warn"


class Quantity(str, Enum):
    """Physical quantity families handled by the unit conversion engine."""

    TEMPERATURE = "temperature"
    TEMPERATURE_DELTA = "temperature_delta"
    FLOW = "flow"
    PRESSURE = "pressure"
    HEAT_CAPACITY = "heat_capacity"
    LATENT_HEAT = "latent_heat"
    HTC = "htc"


# =============================================================================
# Editable Models
# =============================================================================


class ScalarSpec(BaseModel):
    """One physical quantity as entered by a user: a fixed value or a range.

    Only ``value`` is meaningful in fixed mode and only ``lo``/``hi`` in
    range mode. Empty text means "not filled in".

    Attributes:
        mode: Fixed value or closed interval.
        unit: Unit label from the quantity's unit set.
        value: Fixed value text.
        lo: Lower bound text.
        hi: Upper bound text.
    """

    mode: ScalarMode = Field(default=ScalarMode.FIXED)
    unit: str = Field(default="")
    value: str = Field(default="")
    lo: str = Field(default="")
    hi: str = Field(default="")

    model_config = {"extra": "ignore"}

    @field_validator("unit", "value", "lo", "hi", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        """Accept JSON numbers for text fields."""
        return _as_text(v)


class UnitNumber(BaseModel):
    """A unit-tagged number without range mode (e.g. HTC, latent heat)."""

    value: str = Field(default="")
    unit: str = Field(default="")

    model_config = {"extra": "ignore"}

    @field_validator("value", "unit", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        """Accept JSON numbers for text fields."""
        return _as_text(v)


class StreamRow(BaseModel):
    """A hot or cold process stream as edited by the engineer.

    Attributes:
        id: Process-assigned unique id, stable across edits.
        name: User-facing name; must be non-empty and unique.
        thermal: hot or cold.
        kind: Structural stream kind.
        flow: Molar flow ``F``.
        t_in: Inlet temperature ``Tin``.
        t_out: Outlet temperature ``Tout``.
        p_in: Inlet pressure ``Pin``.
        p_out: Outlet pressure ``Pout``.
        frac_text: Free-text composition fractions (``"0.5,0.5"``).
        use_advanced_hcoeff: Use the explicit 6-coefficient polynomial.
        cp: Constant heat capacity (simple model).
        hcoeff6: Six enthalpy polynomial coefficients (advanced model).
        hvap: Latent heat.
        htc: Heat-transfer coefficient.
        t_cont: Contact/driving temperature delta.
        cost: Cost figure.
        pricing_basis: Energy or Power pricing.
        min_td: Minimum approach temperature delta.
        superheating_deg: Superheating temperature delta.
        subcooling_deg: Subcooling temperature delta.
    """

    id: str = Field(default_factory=_new_id)
    name: str = Field(default="")
    thermal: ThermalKind = Field(default=ThermalKind.HOT)
    kind: StreamKind = Field(default=StreamKind.COMMON)

    flow: ScalarSpec = Field(default_factory=ScalarSpec, alias="F")
    t_in: ScalarSpec = Field(default_factory=ScalarSpec, alias="Tin")
    t_out: ScalarSpec = Field(default_factory=ScalarSpec, alias="Tout")
    p_in: ScalarSpec = Field(default_factory=ScalarSpec, alias="Pin")
    p_out: ScalarSpec = Field(default_factory=ScalarSpec, alias="Pout")

    frac_text: str = Field(default="", alias="fracText")

    use_advanced_hcoeff: bool = Field(default=False, alias="useAdvancedHcoeff")
    cp: UnitNumber = Field(default_factory=UnitNumber, alias="Cp")
    hcoeff6: List[str] = Field(
        default_factory=lambda: ["0"] * 6, alias="Hcoeff6",
    )
    hvap: UnitNumber = Field(default_factory=UnitNumber, alias="Hvap")
    htc: UnitNumber = Field(default_factory=UnitNumber, alias="HTC")
    t_cont: UnitNumber = Field(default_factory=UnitNumber, alias="Tcont")
    cost: UnitNumber = Field(default_factory=UnitNumber)
    pricing_basis: PricingBasis = Field(default=PricingBasis.ENERGY)

    min_td: UnitNumber = Field(default_factory=UnitNumber, alias="min_TD")
    superheating_deg: UnitNumber = Field(default_factory=UnitNumber)
    subcooling_deg: UnitNumber = Field(default_factory=UnitNumber)

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator("name", "frac_text", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        """Accept JSON numbers for text fields."""
        return _as_text(v)

    @field_validator("hcoeff6", mode="before")
    @classmethod
    def coerce_coefficients(cls, v: Any) -> Any:
        """Accept numeric coefficient lists."""
        if isinstance(v, (list, tuple)):
            return [_as_text(x) for x in v]
        return v

    def scalar(self, label: str) -> ScalarSpec:
        """Return the Scalar Spec stored under a wire label (``"Tin"``)."""
        return getattr(self, SCALAR_FIELDS[label])

    def unit_number(self, label: str) -> UnitNumber:
        """Return the unit-tagged number stored under a wire label (``"HTC"``)."""
        return getattr(self, UNIT_NUMBER_FIELDS[label])


# Wire label -> attribute name, in validation order.
SCALAR_FIELDS: Dict[str, str] = {
    "F": "flow",
    "Tin": "t_in",
    "Tout": "t_out",
    "Pin": "p_in",
    "Pout": "p_out",
}

UNIT_NUMBER_FIELDS: Dict[str, str] = {
    "Cp": "cp",
    "Hvap": "hvap",
    "HTC": "htc",
    "Tcont": "t_cont",
    "cost": "cost",
    "min_TD": "min_td",
    "superheating_deg": "superheating_deg",
    "subcooling_deg": "subcooling_deg",
}


class ForbiddenMatch(BaseModel):
    """A row bounding (or forbidding) duty between a hot and a cold stream."""

    id: str = Field(default_factory=_new_id)
    hot: str = Field(default="")
    cold: str = Field(default="")
    q_lb: str = Field(default="", alias="Q_lb")
    q_ub: str = Field(default="", alias="Q_ub")

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator("hot", "cold", "q_lb", "q_ub", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        """Accept JSON numbers for text fields."""
        return _as_text(v)

    def is_blank(self) -> bool:
        """True when no field of the row has been filled in."""
        return not (
            self.hot.strip() or self.cold.strip()
            or self.q_lb.strip() or self.q_ub.strip()
        )


class MVRConfig(BaseModel):
    """Compressor (MVR) sub-configuration."""

    method: MVRMethod = Field(default=MVRMethod.PIECEWISE)
    mode: str = Field(default="polytropic")
    step_ratio: str = Field(default="0.007")
    isentropic_efficiency: str = Field(default="0.72")
    polytropic_efficiency: str = Field(default="0.75")
    mechanical_efficiency: str = Field(default="0.97")

    model_config = {"extra": "ignore"}

    @field_validator(
        "mode", "step_ratio", "isentropic_efficiency",
        "polytropic_efficiency", "mechanical_efficiency",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        """Accept JSON numbers for text fields."""
        return _as_text(v)


class IntervalsConfig(BaseModel):
    """The single process-wide interval/grid configuration.

    Attributes:
        forbidden_match: Forbidden/constrained match rows.
        node_rule: Temperature-node generation rule.
        t_interval_method: Interval refinement method.
        t_nodes_specified_text: Custom node list as free text (K).
        max_delta_t: Span cap text (``maxDeltaT``).
        max_num_t: Count cap text (``maxnumT``).
        mvr_config: Compressor sub-configuration.
        use_clapeyron: Clausius-Clapeyron mixture model flag.
    """

    forbidden_match: List[ForbiddenMatch] = Field(default_factory=list)
    node_rule: NodeRule = Field(default=NodeRule.INOUT)
    t_interval_method: TGridMethod = Field(
        default=TGridMethod.DEFAULT, alias="T_interval_method",
    )
    t_nodes_specified_text: str = Field(
        default="", alias="T_nodes_specified_text",
    )
    max_delta_t: str = Field(default="", alias="maxDeltaT")
    max_num_t: str = Field(default="", alias="maxnumT")
    mvr_config: MVRConfig = Field(default_factory=MVRConfig)
    use_clapeyron: bool = Field(default=False)

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator(
        "t_nodes_specified_text", "max_delta_t", "max_num_t", mode="before",
    )
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        """Accept JSON numbers for text fields."""
        return _as_text(v)


# =============================================================================
# Diagnostics
# =============================================================================


class Issue(BaseModel):
    """A single validation diagnostic. Replaced wholesale, never mutated.

    Attributes:
        level: error (blocking) or warn.
        stream_id: Owning stream id, or the configuration sentinel.
        field: Field label the issue refers to, if any.
        message: Human-readable message.
    """

    level: IssueLevel
    stream_id: str = Field(..., alias="streamId")
    field: Optional[str] = Field(default=None)
    message: str = Field(default="")

    model_config = {"frozen": True, "populate_by_name": True}

    @property
    def is_blocking(self) -> bool:
        return self.level == IssueLevel.ERROR


# =============================================================================
# SI Payload Models
# =============================================================================

SIValue = Union[float, Tuple[float, float]]


class StreamPayloadSI(BaseModel):
    """One stream of the SI-normalized solver request."""

    name: str
    thermal: str
    kind: str

    flow: SIValue = Field(..., alias="F")
    t_in: SIValue = Field(..., alias="Tin")
    t_out: SIValue = Field(..., alias="Tout")

    p_in: Optional[SIValue] = Field(default=None, alias="Pin")
    p_out: Optional[SIValue] = Field(default=None, alias="Pout")

    frac: List[float] = Field(default_factory=list)
    hcoeff: Tuple[float, float, float, float, float, float] = Field(
        ..., alias="Hcoeff",
    )
    hvap: float = Field(default=0.0, alias="Hvap")
    htc: float = Field(default=0.0, alias="HTC")
    t_cont: float = Field(default=0.0, alias="Tcont")
    cost: float = Field(default=0.0)
    pricing_basis: str

    min_td: float = Field(default=0.0, alias="min_TD")
    superheating_deg: float = Field(default=0.0)
    subcooling_deg: float = Field(default=0.0)

    model_config = {"populate_by_name": True}


class ForbiddenMatchPayloadSI(BaseModel):
    """Trimmed forbidden/constrained match row."""

    hot: str
    cold: str
    q_lb: float = Field(default=0.0, alias="Q_lb")
    q_ub: float = Field(default=0.0, alias="Q_ub")

    model_config = {"populate_by_name": True}


class MVRConfigPayloadSI(BaseModel):
    """Numeric compressor sub-configuration."""

    method: str
    mode: str
    step_ratio: float = 0.0
    isentropic_efficiency: float = 0.0
    polytropic_efficiency: float = 0.0
    mechanical_efficiency: float = 0.0


class IntervalsConfigPayloadSI(BaseModel):
    """Numeric interval/grid configuration."""

    forbidden_match: List[ForbiddenMatchPayloadSI] = Field(default_factory=list)
    node_rule: str
    t_interval_method: str = Field(..., alias="T_interval_method")
    t_nodes_specified: List[float] = Field(
        default_factory=list, alias="T_nodes_specified",
    )
    max_delta_t: float = Field(default=0.0, alias="maxDeltaT")
    max_num_t: int = Field(default=0, alias="maxnumT")
    mvr_config: MVRConfigPayloadSI
    use_clapeyron: bool = False

    model_config = {"populate_by_name": True}


class PayloadSI(BaseModel):
    """Build request body: ``{streams, intervals_config?}``."""

    streams: List[StreamPayloadSI] = Field(default_factory=list)
    intervals_config: Optional[IntervalsConfigPayloadSI] = None

    model_config = {"populate_by_name": True}

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the wire dictionary.

        ``intervals_config`` is omitted when absent; optional pressures stay
        as explicit nulls.
        """
        exclude = {"intervals_config"} if self.intervals_config is None else None
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


# =============================================================================
# Factories
# =============================================================================


def _empty_scalar(mode: ScalarMode, unit: str) -> ScalarSpec:
    return ScalarSpec(mode=mode, unit=unit)


def make_default_stream(n: int, thermal: ThermalKind) -> StreamRow:
    """Create a new Common stream named ``h<n>``/``c<n>`` with empty fields.

    Args:
        n: Ordinal used in the default name.
        thermal: hot or cold.

    Returns:
        A fresh StreamRow with its own id.
    """
    thermal = ThermalKind(thermal)
    prefix = "h" if thermal == ThermalKind.HOT else "c"
    return StreamRow(
        name=f"{prefix}{n}",
        thermal=thermal,
        kind=StreamKind.COMMON,
        flow=_empty_scalar(ScalarMode.FIXED, "mol/s"),
        t_in=_empty_scalar(ScalarMode.FIXED, "°C"),
        t_out=_empty_scalar(ScalarMode.FIXED, "°C"),
        p_in=_empty_scalar(ScalarMode.FIXED, "bar"),
        p_out=_empty_scalar(ScalarMode.FIXED, "bar"),
        frac_text="",
        use_advanced_hcoeff=False,
        cp=UnitNumber(value="", unit="kJ/(mol*K)"),
        hcoeff6=["0"] * 6,
        hvap=UnitNumber(value="", unit="kJ/mol"),
        htc=UnitNumber(value="", unit="kW/(m^2*K)"),
        t_cont=UnitNumber(value="", unit="K"),
        cost=UnitNumber(value="0", unit="-"),
        pricing_basis=PricingBasis.ENERGY,
        min_td=UnitNumber(value="0", unit="K"),
        superheating_deg=UnitNumber(value="0", unit="K"),
        subcooling_deg=UnitNumber(value="0", unit="K"),
    )


def duplicate_stream(stream: StreamRow) -> StreamRow:
    """Copy every field of ``stream`` under a new id and a ``_copy`` name."""
    return stream.model_copy(
        deep=True,
        update={"id": _new_id(), "name": f"{stream.name}_copy"},
    )


def default_intervals_config() -> IntervalsConfig:
    """Return the default interval/grid configuration."""
    return IntervalsConfig()


def new_forbidden_match(
    hot: str = "",
    cold: str = "",
    q_lb: str = "",
    q_ub: str = "",
) -> ForbiddenMatch:
    """Create a forbidden/constrained match row with a fresh id."""
    return ForbiddenMatch(hot=hot, cold=cold, q_lb=q_lb, q_ub=q_ub)


__all__ = [
    # Enumerations
    "ThermalKind",
    "StreamKind",
    "PricingBasis",
    "ScalarMode",
    "NodeRule",
    "TGridMethod",
    "MVRMethod",
    "IssueLevel",
    "Quantity",
    # Editable models
    "ScalarSpec",
    "UnitNumber",
    "StreamRow",
    "ForbiddenMatch",
    "MVRConfig",
    "IntervalsConfig",
    "SCALAR_FIELDS",
    "UNIT_NUMBER_FIELDS",
    # Diagnostics
    "Issue",
    # Payload
    "SIValue",
    "StreamPayloadSI",
    "ForbiddenMatchPayloadSI",
    "MVRConfigPayloadSI",
    "IntervalsConfigPayloadSI",
    "PayloadSI",
    # Factories
    "make_default_stream",
    "duplicate_stream",
    "default_intervals_config",
    "new_forbidden_match",
]
