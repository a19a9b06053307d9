# -*- coding: utf-8 -*-
"""Tests for stream specification configuration."""

import pytest

from energy_integration.exceptions import ConfigurationError
from energy_integration.stream_spec.config import (
    StreamSpecConfig,
    get_config,
    reset_config,
    set_config,
)


class TestDefaults:

    def test_defaults(self):
        cfg = StreamSpecConfig()
        assert cfg.temperature_tolerance == 1e-6
        assert cfg.interval_issue_owner == "__intervals__"
        assert cfg.strict_units is False
        assert cfg.schema_version == "ei-stream-ui-v1"
        assert cfg.max_streams == 500
        assert cfg.enable_provenance is True

    @pytest.mark.parametrize("kwargs", [
        {"temperature_tolerance": -1.0},
        {"max_streams": 0},
        {"detail_cache_size": 0},
        {"interval_issue_owner": ""},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            StreamSpecConfig(**kwargs)


class TestFromEnv:

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("EI_STREAM_SPEC_STRICT_UNITS", "yes")
        monkeypatch.setenv("EI_STREAM_SPEC_TEMPERATURE_TOLERANCE", "0.01")
        monkeypatch.setenv("EI_STREAM_SPEC_MAX_STREAMS", "20")
        monkeypatch.setenv("EI_STREAM_SPEC_SCHEMA_VERSION", "ei-stream-ui-v2")
        monkeypatch.setenv("EI_STREAM_SPEC_ENABLE_PROVENANCE", "false")

        cfg = StreamSpecConfig.from_env()
        assert cfg.strict_units is True
        assert cfg.temperature_tolerance == 0.01
        assert cfg.max_streams == 20
        assert cfg.schema_version == "ei-stream-ui-v2"
        assert cfg.enable_provenance is False

    def test_malformed_numbers_fall_back(self, monkeypatch, caplog):
        monkeypatch.setenv("EI_STREAM_SPEC_MAX_STREAMS", "lots")
        monkeypatch.setenv("EI_STREAM_SPEC_TEMPERATURE_TOLERANCE", "tiny")

        cfg = StreamSpecConfig.from_env()
        assert cfg.max_streams == 500
        assert cfg.temperature_tolerance == 1e-6
        assert "EI_STREAM_SPEC_MAX_STREAMS" in caplog.text

    def test_out_of_range_rejected(self, monkeypatch):
        monkeypatch.setenv("EI_STREAM_SPEC_DETAIL_CACHE_SIZE", "-5")
        with pytest.raises(ConfigurationError):
            StreamSpecConfig.from_env()


class TestSingleton:

    def test_set_and_reset(self, monkeypatch):
        custom = StreamSpecConfig(max_streams=3)
        set_config(custom)
        assert get_config() is custom

        reset_config()
        monkeypatch.setenv("EI_STREAM_SPEC_MAX_STREAMS", "7")
        assert get_config().max_streams == 7
        assert get_config() is get_config()
