# -*- coding: utf-8 -*-
"""
Payload Builder - Stream Specification Engine

Converts the editable stream model and the interval configuration into the
SI-normalized request consumed by the HEN solver backend. The builder is
total: absent numeric fields become ``0`` (or ``None`` for the MVR-only
pressures), so it must only be called on a model that validation has
cleared of blocking errors. The service facade enforces that gate.

Heat capacity is sent as the 6-coefficient enthalpy polynomial
``Hcoeff``. The simple model contributes only the linear term
``[0, Cp_SI, 0, 0, 0, 0]``; the advanced model passes the six entered
coefficients through unconverted (they are entered in SI).

Range values are sent as ``[lo, hi]`` in entry order; a reversed pair is
left for the backend to canonicalize.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import Dict, List, Optional, Sequence

from energy_integration.stream_spec.config import StreamSpecConfig, get_config
from energy_integration.stream_spec.models import (
    ForbiddenMatchPayloadSI,
    IntervalsConfig,
    IntervalsConfigPayloadSI,
    MVRConfigPayloadSI,
    PayloadSI,
    Quantity,
    SIValue,
    StreamKind,
    StreamPayloadSI,
    StreamRow,
)
from energy_integration.stream_spec.units import (
    UnitConversionEngine,
    parse_frac,
    parse_num,
    parse_number_list,
)

logger = logging.getLogger(__name__)

__all__ = ["PayloadBuilder", "build_payload_si", "build_intervals_config_si"]


def _num(text: str) -> float:
    """Parse text, defaulting absent values to 0."""
    v = parse_num(text)
    return 0.0 if v is None else v


def build_intervals_config_si(cfg: IntervalsConfig) -> IntervalsConfigPayloadSI:
    """Convert the interval configuration to its numeric wire form.

    Forbidden-match rows missing either stream name are dropped; ``maxnumT``
    is truncated toward zero.
    """
    rows: List[ForbiddenMatchPayloadSI] = []
    for r in cfg.forbidden_match:
        hot = r.hot.strip()
        cold = r.cold.strip()
        if hot and cold:
            rows.append(ForbiddenMatchPayloadSI(
                hot=hot, cold=cold, q_lb=_num(r.q_lb), q_ub=_num(r.q_ub),
            ))

    mvr = cfg.mvr_config
    return IntervalsConfigPayloadSI(
        forbidden_match=rows,
        node_rule=cfg.node_rule.value,
        t_interval_method=cfg.t_interval_method.value,
        t_nodes_specified=parse_number_list(cfg.t_nodes_specified_text),
        max_delta_t=_num(cfg.max_delta_t),
        max_num_t=math.trunc(_num(cfg.max_num_t)),
        mvr_config=MVRConfigPayloadSI(
            method=mvr.method.value,
            mode=mvr.mode.strip(),
            step_ratio=_num(mvr.step_ratio),
            isentropic_efficiency=_num(mvr.isentropic_efficiency),
            polytropic_efficiency=_num(mvr.polytropic_efficiency),
            mechanical_efficiency=_num(mvr.mechanical_efficiency),
        ),
        use_clapeyron=cfg.use_clapeyron,
    )


class PayloadBuilder:
    """Builds SI payloads through a configured UnitConversionEngine.

    Attributes:
        config: StreamSpecConfig in use.
        converter: Unit conversion engine (applies the unknown-unit policy).

    Example:
        >>> builder = PayloadBuilder()
        >>> payload = builder.build(streams, intervals_config)
        >>> payload.to_wire()["streams"][0]["Tin"]
        423.15
    """

    def __init__(
        self,
        config: Optional[StreamSpecConfig] = None,
        converter: Optional[UnitConversionEngine] = None,
    ) -> None:
        """Initialise PayloadBuilder.

        Args:
            config: Optional configuration. Uses global config if None.
            converter: Optional shared conversion engine.
        """
        self.config = config or get_config()
        self.converter = converter or UnitConversionEngine(self.config)
        self._lock = threading.Lock()
        self._stats: Dict[str, int] = {"payloads": 0, "streams": 0}
        logger.info("PayloadBuilder initialised")

    def build(
        self,
        streams: Sequence[StreamRow],
        intervals_config: Optional[IntervalsConfig] = None,
    ) -> PayloadSI:
        """Convert ``streams`` (and the configuration, if any) to SI.

        Args:
            streams: Streams in display order.
            intervals_config: Interval configuration; omitted from the
                payload when None.

        Returns:
            PayloadSI ready for ``to_wire()``.

        Raises:
            UnitConversionError: On unknown unit labels when strict units
                are configured.
        """
        payload = PayloadSI(
            streams=[self.build_stream(s) for s in streams],
            intervals_config=(
                build_intervals_config_si(intervals_config)
                if intervals_config is not None else None
            ),
        )
        with self._lock:
            self._stats["payloads"] += 1
            self._stats["streams"] += len(streams)
        logger.debug(
            "Built SI payload: %d streams, intervals_config=%s",
            len(streams), intervals_config is not None,
        )
        return payload

    def build_stream(self, s: StreamRow) -> StreamPayloadSI:
        """Convert one stream to its SI wire form."""
        conv = self.converter

        p_in: Optional[SIValue] = None
        p_out: Optional[SIValue] = None
        if s.kind == StreamKind.MVR:
            p_in = conv.scalar_spec_to_si(s.p_in, Quantity.PRESSURE)
            p_out = conv.scalar_spec_to_si(s.p_out, Quantity.PRESSURE)

        if s.use_advanced_hcoeff:
            coeffs = [_num(x) for x in s.hcoeff6[:6]]
            coeffs += [0.0] * (6 - len(coeffs))
            hcoeff = tuple(coeffs)
        else:
            cp = conv.unit_number_to_si(s.cp, Quantity.HEAT_CAPACITY)
            hcoeff = (0.0, cp or 0.0, 0.0, 0.0, 0.0, 0.0)

        def _or_zero(v: Optional[SIValue]) -> SIValue:
            return 0.0 if v is None else v

        return StreamPayloadSI(
            name=s.name.strip(),
            thermal=s.thermal.value,
            kind=s.kind.value,
            flow=_or_zero(conv.scalar_spec_to_si(s.flow, Quantity.FLOW)),
            t_in=_or_zero(conv.scalar_spec_to_si(s.t_in, Quantity.TEMPERATURE)),
            t_out=_or_zero(conv.scalar_spec_to_si(s.t_out, Quantity.TEMPERATURE)),
            p_in=p_in,
            p_out=p_out,
            frac=parse_frac(s.frac_text),
            hcoeff=hcoeff,
            hvap=_or_zero(conv.unit_number_to_si(s.hvap, Quantity.LATENT_HEAT)),
            htc=_or_zero(conv.unit_number_to_si(s.htc, Quantity.HTC)),
            t_cont=_or_zero(conv.unit_number_to_si(s.t_cont, Quantity.TEMPERATURE_DELTA)),
            # cost is passed through in its entered unit
            cost=_num(s.cost.value),
            pricing_basis=s.pricing_basis.value,
            min_td=_or_zero(conv.unit_number_to_si(s.min_td, Quantity.TEMPERATURE_DELTA)),
            superheating_deg=_or_zero(
                conv.unit_number_to_si(s.superheating_deg, Quantity.TEMPERATURE_DELTA),
            ),
            subcooling_deg=_or_zero(
                conv.unit_number_to_si(s.subcooling_deg, Quantity.TEMPERATURE_DELTA),
            ),
        )

    def get_statistics(self) -> Dict[str, int]:
        """Return a snapshot of builder counters."""
        with self._lock:
            return dict(self._stats)


def build_payload_si(
    streams: Sequence[StreamRow],
    intervals_config: Optional[IntervalsConfig] = None,
    config: Optional[StreamSpecConfig] = None,
) -> PayloadSI:
    """One-shot build with a fresh builder. Not gated on validation."""
    return PayloadBuilder(config).build(streams, intervals_config)
