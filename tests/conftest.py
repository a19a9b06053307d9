# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

import pytest

from energy_integration.stream_spec.config import StreamSpecConfig, reset_config, set_config
from energy_integration.stream_spec.models import (
    ScalarMode,
    ScalarSpec,
    StreamKind,
    ThermalKind,
    UnitNumber,
    default_intervals_config,
    make_default_stream,
)


@pytest.fixture(autouse=True)
def stream_spec_config():
    """Install a default config, ignoring EI_STREAM_SPEC_* in the environment."""
    config = StreamSpecConfig()
    set_config(config)
    yield config
    reset_config()


def fixed(value, unit):
    """Fixed Scalar Spec."""
    return ScalarSpec(mode=ScalarMode.FIXED, unit=unit, value=str(value))


def ranged(lo, hi, unit):
    """Range Scalar Spec."""
    return ScalarSpec(mode=ScalarMode.RANGE, unit=unit, lo=str(lo), hi=str(hi))


def make_stream(name, thermal, f, t_in, t_out, cp="2", n=1):
    """Common stream with fixed F (mol/s), Tin/Tout (°C) and Cp (kJ/(mol*K))."""
    s = make_default_stream(n, ThermalKind(thermal))
    return s.model_copy(update={
        "name": name,
        "flow": fixed(f, "mol/s"),
        "t_in": fixed(t_in, "°C"),
        "t_out": fixed(t_out, "°C"),
        "cp": UnitNumber(value=cp, unit="kJ/(mol*K)"),
    })


@pytest.fixture
def h1():
    """Hot stream 150 -> 50 °C, 10 mol/s, Cp 2 kJ/(mol*K)."""
    return make_stream("h1", "hot", 10, 150, 50)


@pytest.fixture
def c1():
    """Cold stream 30 -> 120 °C, 8 mol/s, Cp 2 kJ/(mol*K)."""
    return make_stream("c1", "cold", 8, 30, 120)


@pytest.fixture
def streams(h1, c1):
    return [h1, c1]


@pytest.fixture
def intervals_config():
    return default_intervals_config()


@pytest.fixture
def mvr_stream():
    """Valid MVR stream: F fixed, Pin range 1-5 bar, Pout 8 bar."""
    s = make_stream("m1", "hot", 5, 110, 100)
    return s.model_copy(update={
        "kind": StreamKind.MVR,
        "p_in": ranged(1, 5, "bar"),
        "p_out": fixed(8, "bar"),
    })


@pytest.fixture
def iso_stream():
    """Valid IsothermalFixed stream at 100 °C with Hvap 40 kJ/mol."""
    s = make_stream("v1", "hot", 2, 100, 100)
    return s.model_copy(update={
        "kind": StreamKind.ISOTHERMAL_FIXED,
        "hvap": UnitNumber(value="40", unit="kJ/mol"),
    })


def messages(issues):
    return [i.message for i in issues]