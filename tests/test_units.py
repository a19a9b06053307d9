# -*- coding: utf-8 -*-
"""Tests for text parsing and unit conversion to SI."""

import math

import pytest

from energy_integration.exceptions import UnitConversionError
from energy_integration.stream_spec.config import StreamSpecConfig
from energy_integration.stream_spec.models import Quantity, ScalarSpec, UnitNumber
from energy_integration.stream_spec.units import (
    UnitConversionEngine,
    convert,
    is_finite_si,
    is_known_unit,
    minmax_of_spec,
    parse_frac,
    parse_num,
    parse_number_list,
    supported_units,
    to_si_cp,
    to_si_dt,
    to_si_flow,
    to_si_htc,
    to_si_hvap,
    to_si_pressure,
    to_si_scalar_spec,
    to_si_t,
    to_si_unit_number,
)

from conftest import fixed, ranged


class TestParseNum:

    @pytest.mark.parametrize("text,expected", [
        ("5", 5.0),
        ("  -2.5 ", -2.5),
        ("1e3", 1000.0),
        ("0", 0.0),
    ])
    def test_numbers(self, text, expected):
        assert parse_num(text) == expected

    @pytest.mark.parametrize("text", [
        "", "   ", "abc", "1,5", "nan", "inf", "-Infinity", "1_000", "0x10", "0b11", None,
    ])
    def test_absent(self, text):
        assert parse_num(text) is None

    def test_zero_is_not_absent(self):
        assert parse_num("0") is not None

    def test_number_list_splits_on_commas_and_whitespace(self):
        assert parse_number_list("400, 350 300\n250") == [400.0, 350.0, 300.0, 250.0]
        assert parse_number_list("400, x, 300") == [400.0, 300.0]
        assert parse_number_list("  ") == []

    def test_frac_splits_on_commas_only(self):
        assert parse_frac("0.5, 0.5") == [0.5, 0.5]
        assert parse_frac("0.5 0.5") == []
        assert parse_frac("") == []


class TestScalarConversions:
    """Single-value conversions per quantity."""

    def test_temperature(self):
        assert to_si_t(0, "°C") == 273.15
        assert to_si_t(300, "K") == 300
        assert to_si_t(32, "°F") == pytest.approx(273.15)
        assert to_si_t(212, "°F") == pytest.approx(373.15)
        assert to_si_t(491.67, "°R") == pytest.approx(273.15)

    def test_temperature_delta(self):
        assert to_si_dt(10, "°C") == 10
        assert to_si_dt(10, "K") == 10
        assert to_si_dt(9, "°F") == pytest.approx(5)

    def test_flow(self):
        assert abs(to_si_flow(1, "kmol/h") - 1000 / 3600) < 1e-9
        assert to_si_flow(2, "kmol/s") == 2000
        assert to_si_flow(3, "mol/s") == 3

    def test_pressure(self):
        assert to_si_pressure(1, "bar") == 1e5
        assert to_si_pressure(1, "kPa") == 1e3
        assert to_si_pressure(1, "MPa") == 1e6
        assert to_si_pressure(7, "Pa") == 7

    def test_heat_capacity_latent_heat_htc(self):
        assert to_si_cp(2, "kJ/(mol*K)") == 2000
        assert to_si_cp(1, "MJ/(mol*K)") == 1e6
        assert to_si_hvap(40, "kJ/mol") == 40000
        assert to_si_htc(1.5, "kW/(m^2*K)") == 1500

    def test_unknown_unit_passes_through(self):
        assert to_si_flow(4, "lbmol/h") == 4
        assert to_si_t(10, "kelvin") == 10

    def test_unknown_unit_strict(self):
        with pytest.raises(UnitConversionError) as exc_info:
            convert(Quantity.PRESSURE, 1, "psi", strict=True)
        assert exc_info.value.context["unit"] == "psi"
        assert exc_info.value.context["quantity"] == "pressure"

    def test_known_units(self):
        assert is_known_unit(Quantity.TEMPERATURE, "°F")
        assert not is_known_unit(Quantity.FLOW, "kg/s")
        units = supported_units()
        assert units["flow"] == ["mol/s", "kmol/h", "kmol/s"]
        assert supported_units(Quantity.HTC) == {"htc": ["W/(m^2*K)", "kW/(m^2*K)"]}


class TestCompositeConversions:

    def test_fixed_spec(self):
        assert to_si_scalar_spec(fixed(150, "°C"), Quantity.TEMPERATURE) == pytest.approx(423.15)

    def test_range_spec_keeps_entry_order(self):
        lo, hi = to_si_scalar_spec(ranged(5, 1, "bar"), Quantity.PRESSURE)
        assert (lo, hi) == (5e5, 1e5)

    def test_absent_spec(self):
        assert to_si_scalar_spec(fixed("", "°C"), Quantity.TEMPERATURE) is None
        assert to_si_scalar_spec(ranged(1, "", "bar"), Quantity.PRESSURE) is None

    def test_unit_number(self):
        assert to_si_unit_number(UnitNumber(value="2", unit="kJ/mol"), to_si_hvap) == 2000
        assert to_si_unit_number(UnitNumber(value="", unit="kJ/mol"), to_si_hvap) is None

    def test_minmax(self):
        assert minmax_of_spec(ranged(5, 1, "K")) == (1.0, 5.0)
        assert minmax_of_spec(fixed(3, "K")) == (3.0, 3.0)
        assert minmax_of_spec(ScalarSpec()) is None


class TestUnitConversionEngine:

    def test_permissive_counts_fallbacks(self):
        engine = UnitConversionEngine()
        assert engine.to_si(4, "lbmol/h", Quantity.FLOW) == 4
        assert engine.to_si(1, "bar", Quantity.PRESSURE) == 1e5
        stats = engine.get_statistics()
        assert stats["unknown_unit_fallbacks"] == 1
        assert stats["conversions"] == 2

    def test_strict_raises(self):
        engine = UnitConversionEngine(StreamSpecConfig(strict_units=True))
        with pytest.raises(UnitConversionError):
            engine.scalar_spec_to_si(fixed(1, "psi"), Quantity.PRESSURE)

    def test_strict_ignores_absent_values(self):
        engine = UnitConversionEngine(StreamSpecConfig(strict_units=True))
        assert engine.scalar_spec_to_si(fixed("", "psi"), Quantity.PRESSURE) is None
        assert engine.unit_number_to_si(UnitNumber(value="", unit="?"), Quantity.HTC) is None

    def test_range_spec(self):
        engine = UnitConversionEngine()
        lo, hi = engine.scalar_spec_to_si(ranged(1, 5, "bar"), Quantity.PRESSURE)
        assert lo == 1e5
        assert hi == 5e5
        assert not math.isnan(lo)

    def test_overflow_is_absent(self):
        engine = UnitConversionEngine()
        assert engine.scalar_spec_to_si(fixed("1e308", "kmol/s"), Quantity.FLOW) is None
        assert engine.scalar_spec_to_si(ranged(1, "1e308", "kmol/s"), Quantity.FLOW) is None
        assert engine.unit_number_to_si(
            UnitNumber(value="1e308", unit="kW/(m^2*K)"), Quantity.HTC,
        ) is None
        assert engine.get_statistics()["overflows"] == 3

    def test_is_finite_si(self):
        assert is_finite_si(None)
        assert is_finite_si((1.0, 2.0))
        assert not is_finite_si((1.0, float("inf")))
        assert not is_finite_si(float("inf"))
