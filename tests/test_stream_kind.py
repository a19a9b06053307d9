# -*- coding: utf-8 -*-
"""Tests for kind transition canonicalization and kind-aware field edits."""

import pytest

from energy_integration.stream_spec.models import ScalarMode, StreamKind
from energy_integration.stream_spec.stream_kind import (
    KIND_FORCED_MODES,
    apply_kind_canonicalization,
    apply_spec_update,
    sync_isothermal,
)

from conftest import fixed, ranged


class TestKindCanonicalization:
    """Structural changes applied on a kind transition."""

    def test_isothermal_fixed_mirrors_tin(self, h1):
        s = apply_kind_canonicalization(h1, StreamKind.ISOTHERMAL_FIXED)
        assert s.kind == StreamKind.ISOTHERMAL_FIXED
        assert s.t_in.mode == ScalarMode.FIXED
        assert s.t_out.mode == ScalarMode.FIXED
        assert s.t_out.value == s.t_in.value == "150"
        assert s.t_out.unit == s.t_in.unit

    def test_isothermal_fixed_from_range_tin(self, h1):
        h1 = h1.model_copy(update={"t_in": ranged(140, 150, "K")})
        s = apply_kind_canonicalization(h1, "IsothermalFixed")
        assert s.t_in.mode == ScalarMode.FIXED
        assert s.t_in.value == "140"
        assert s.t_out.value == "140"
        assert s.t_out.unit == "K"

    def test_isothermal_variable_ranges(self, h1):
        s = apply_kind_canonicalization(h1, StreamKind.ISOTHERMAL_VARIABLE)
        assert s.t_in.mode == ScalarMode.RANGE
        assert (s.t_in.lo, s.t_in.hi) == ("150", "150")
        assert s.t_out.mode == ScalarMode.RANGE
        assert (s.t_out.lo, s.t_out.hi) == ("150", "150")

    def test_mvr_forces_flow_fixed_and_pin_range(self, h1):
        h1 = h1.model_copy(update={
            "flow": ranged(1, 2, "mol/s"),
            "p_in": fixed(3, "bar"),
        })
        s = apply_kind_canonicalization(h1, StreamKind.MVR)
        assert s.flow.mode == ScalarMode.FIXED
        assert s.flow.value == "1"
        assert s.p_in.mode == ScalarMode.RANGE
        assert (s.p_in.lo, s.p_in.hi) == ("3", "3")

    @pytest.mark.parametrize("kind", [StreamKind.COMMON, StreamKind.MHP, StreamKind.RANKINE_CYCLE])
    def test_free_form_kinds_leave_fields(self, h1, kind):
        h1 = h1.model_copy(update={"t_in": ranged(140, 150, "°C")})
        s = apply_kind_canonicalization(h1, kind)
        assert s.kind == kind
        assert s.t_in == h1.t_in
        assert s.t_out == h1.t_out
        assert s.flow == h1.flow
        assert KIND_FORCED_MODES[kind] == {}

    def test_input_not_mutated(self, h1):
        before = h1.model_copy(deep=True)
        apply_kind_canonicalization(h1, StreamKind.ISOTHERMAL_VARIABLE)
        assert h1 == before

    def test_id_and_name_preserved(self, h1):
        s = apply_kind_canonicalization(h1, StreamKind.MVR)
        assert s.id == h1.id
        assert s.name == h1.name

    def test_unknown_kind_rejected(self, h1):
        with pytest.raises(ValueError):
            apply_kind_canonicalization(h1, "Turbine")


class TestSyncIsothermal:

    def test_non_isothermal_unchanged(self, h1):
        assert sync_isothermal(h1) is h1

    def test_resyncs_tout(self, iso_stream):
        broken = iso_stream.model_copy(update={"t_out": fixed(80, "K")})
        s = sync_isothermal(broken)
        assert s.t_out.value == "100"
        assert s.t_out.unit == "°C"


class TestApplySpecUpdate:
    """Field edits under kind-locked modes."""

    def test_common_edit_replaces_field(self, h1):
        s = apply_spec_update(h1, "Tout", ranged(40, 60, "°C"))
        assert s.t_out == ranged(40, 60, "°C")
        assert s.t_in == h1.t_in

    def test_mvr_flow_stays_fixed(self, mvr_stream):
        s = apply_spec_update(mvr_stream, "F", ranged(2, 4, "mol/s"))
        assert s.flow.mode == ScalarMode.FIXED
        assert s.flow.value == "2"

    def test_isothermal_tin_edit_mirrors(self, iso_stream):
        s = apply_spec_update(iso_stream, "Tin", fixed(120, "K"))
        assert s.t_in.value == "120"
        assert s.t_out.value == "120"
        assert s.t_out.unit == "K"

    def test_isothermal_fixed_tin_cannot_become_range(self, iso_stream):
        s = apply_spec_update(iso_stream, "Tin", ranged(90, 95, "°C"))
        assert s.t_in.mode == ScalarMode.FIXED
        assert s.t_in.value == "90"
        assert s.t_out.value == "90"

    def test_isothermal_tout_edit_ignored(self, iso_stream):
        s = apply_spec_update(iso_stream, "Tout", fixed(20, "°C"))
        assert s.t_out.value == iso_stream.t_in.value

    def test_unknown_label(self, h1):
        with pytest.raises(KeyError):
            apply_spec_update(h1, "Tmid", fixed(1, "K"))
