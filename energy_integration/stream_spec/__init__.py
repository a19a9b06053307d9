# -*- coding: utf-8 -*-
"""
Stream Specification Engine
===========================

Describes hot and cold process streams for heat-exchanger-network design,
checks them, and turns them into the SI request of the HEN solver backend.

- Scalar Specs: a quantity entered as a fixed value or a closed range
- Stream kinds (Common, IsothermalFixed, IsothermalVariable, MVR, MHP,
  RankineCycle) with canonicalization on kind change
- Unit conversion of temperatures, deltas, flows, pressures, heat
  capacities, latent heats and heat-transfer coefficients to SI
- Validation into ordered ``error``/``warn`` diagnostics
- SI payload building, gated on the absence of errors
- Streamset save/load and solver response parsing
- Prometheus metrics and SHA-256 provenance
- Thread-safe configuration with EI_STREAM_SPEC_ env prefix

Key Components:
    - config: StreamSpecConfig with EI_STREAM_SPEC_ env prefix
    - models: Pydantic v2 models for editable streams, issues and payloads
    - scalar_spec: Mode switching and isothermal mirroring
    - stream_kind: Kind transition canonicalization
    - units: Unit conversion engine
    - validation: Validation engine
    - payload: Payload builder
    - streamset: Streamset persistence
    - results: Solver response parsers and detail lookup cache
    - provenance: SHA-256 chain-hashed audit trail
    - metrics: Prometheus metrics
    - setup: StreamSpecService facade

Example:
    >>> from energy_integration.stream_spec import StreamSpecService
    >>> service = StreamSpecService()
    >>> service.validate()
"""

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from energy_integration.stream_spec.config import (
    StreamSpecConfig,
    get_config,
    set_config,
    reset_config,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from energy_integration.stream_spec.models import (
    # Enumerations
    ThermalKind,
    StreamKind,
    PricingBasis,
    ScalarMode,
    NodeRule,
    TGridMethod,
    MVRMethod,
    IssueLevel,
    Quantity,
    # Editable models
    ScalarSpec,
    UnitNumber,
    StreamRow,
    ForbiddenMatch,
    MVRConfig,
    IntervalsConfig,
    # Diagnostics
    Issue,
    # Payload
    PayloadSI,
    StreamPayloadSI,
    IntervalsConfigPayloadSI,
    # Factories
    make_default_stream,
    duplicate_stream,
    default_intervals_config,
    new_forbidden_match,
)

# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------
from energy_integration.stream_spec.scalar_spec import set_mode, toggle_mode, mirror
from energy_integration.stream_spec.stream_kind import (
    apply_kind_canonicalization,
    apply_spec_update,
)
from energy_integration.stream_spec.units import (
    UnitConversionEngine,
    parse_num,
    to_si_t,
    to_si_dt,
    to_si_flow,
    to_si_pressure,
    to_si_cp,
    to_si_hvap,
    to_si_htc,
    to_si_scalar_spec,
)
from energy_integration.stream_spec.validation import (
    StreamValidator,
    validate_all,
    has_blocking_error,
)
from energy_integration.stream_spec.payload import PayloadBuilder, build_payload_si
from energy_integration.stream_spec.streamset import (
    Streamset,
    dump_streamset,
    load_streamset,
)
from energy_integration.stream_spec.results import (
    DetailLookupCache,
    parse_solve_response,
)
from energy_integration.stream_spec.provenance import ProvenanceTracker

# ---------------------------------------------------------------------------
# Service facade
# ---------------------------------------------------------------------------
from energy_integration.stream_spec.setup import (
    StreamSpecService,
    configure_stream_spec,
    get_stream_spec,
)

__all__ = [
    # Configuration
    "StreamSpecConfig",
    "get_config",
    "set_config",
    "reset_config",
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
    # Models
    "ScalarSpec",
    "UnitNumber",
    "StreamRow",
    "ForbiddenMatch",
    "MVRConfig",
    "IntervalsConfig",
    "Issue",
    "PayloadSI",
    "StreamPayloadSI",
    "IntervalsConfigPayloadSI",
    "make_default_stream",
    "duplicate_stream",
    "default_intervals_config",
    "new_forbidden_match",
    # Engines
    "set_mode",
    "toggle_mode",
    "mirror",
    "apply_kind_canonicalization",
    "apply_spec_update",
    "UnitConversionEngine",
    "parse_num",
    "to_si_t",
    "to_si_dt",
    "to_si_flow",
    "to_si_pressure",
    "to_si_cp",
    "to_si_hvap",
    "to_si_htc",
    "to_si_scalar_spec",
    "StreamValidator",
    "validate_all",
    "has_blocking_error",
    "PayloadBuilder",
    "build_payload_si",
    "Streamset",
    "dump_streamset",
    "load_streamset",
    "DetailLookupCache",
    "parse_solve_response",
    "ProvenanceTracker",
    # Service
    "StreamSpecService",
    "configure_stream_spec",
    "get_stream_spec",
]
