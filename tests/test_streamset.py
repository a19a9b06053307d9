# -*- coding: utf-8 -*-
"""Tests for streamset save/load."""

import json
import logging

import pytest

from energy_integration.exceptions import StreamsetFormatError
from energy_integration.stream_spec.models import (
    IntervalsConfig,
    MVRMethod,
    NodeRule,
    StreamKind,
    TGridMethod,
    new_forbidden_match,
)
from energy_integration.stream_spec.streamset import (
    SCHEMA_VERSION,
    Streamset,
    default_streamset_name,
    dump_streamset,
    load_streamset,
    new_streamset,
    normalize_intervals_config,
    read_streamset,
    write_streamset,
)

from conftest import ranged


@pytest.fixture
def streamset(streams, mvr_stream):
    cfg = IntervalsConfig(
        forbidden_match=[new_forbidden_match("h1", "c1", "0", "0")],
        node_rule=NodeRule.CUSTOM,
        t_nodes_specified_text="450, 400",
    )
    return new_streamset(streams + [mvr_stream], cfg, name="demo")


class TestDumpLoad:

    def test_round_trip_is_byte_identical(self, streamset):
        text = dump_streamset(streamset)
        assert dump_streamset(load_streamset(text)) == text

    def test_round_trip_preserves_model(self, streamset):
        loaded = load_streamset(dump_streamset(streamset))
        assert loaded == streamset
        assert [s.id for s in loaded.streams] == [s.id for s in streamset.streams]

    def test_wire_keys(self, streamset):
        data = json.loads(dump_streamset(streamset))
        assert data["schema_version"] == SCHEMA_VERSION
        assert data["name"] == "demo"
        stream = data["streams"][0]
        for key in ("F", "Tin", "Tout", "Pin", "Pout", "fracText", "Cp", "Hcoeff6", "min_TD"):
            assert key in stream
        cfg = data["intervals_config"]
        assert cfg["T_nodes_specified_text"] == "450, 400"
        assert cfg["forbidden_match"][0]["Q_ub"] == "0"

    def test_unit_labels_verbatim(self, streamset):
        text = dump_streamset(streamset)
        assert "°C" in text
        assert "\\u00b0" not in text
        assert text.endswith("\n")

    def test_bytes_source(self, streamset):
        loaded = load_streamset(dump_streamset(streamset).encode("utf-8"))
        assert loaded.name == "demo"

    def test_file_round_trip(self, streamset, tmp_path):
        path = write_streamset(streamset, tmp_path / "set.json")
        assert path.exists()
        assert read_streamset(path) == streamset
        assert read_streamset(str(path)).name == "demo"

    def test_range_specs_survive(self, streamset):
        loaded = load_streamset(dump_streamset(streamset))
        mvr = loaded.streams[2]
        assert mvr.kind == StreamKind.MVR
        assert mvr.p_in == ranged(1, 5, "bar")


class TestLoadErrors:

    def test_not_json(self):
        with pytest.raises(StreamsetFormatError) as exc_info:
            load_streamset("{not json")
        assert "not valid JSON" in exc_info.value.message

    @pytest.mark.parametrize("text", ["[]", "42", '{"name": "x"}', '{"streams": {}}'])
    def test_invalid_document(self, text):
        with pytest.raises(StreamsetFormatError) as exc_info:
            load_streamset(text)
        assert exc_info.value.message == "Invalid streamset file."

    def test_invalid_stream_record(self):
        text = json.dumps({"streams": [{"thermal": "lukewarm"}]})
        with pytest.raises(StreamsetFormatError) as exc_info:
            load_streamset(text)
        assert "Invalid stream record" in exc_info.value.message
        assert exc_info.value.context["errors"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(StreamsetFormatError):
            read_streamset(tmp_path / "missing.json")

    def test_invalid_utf8_bytes(self):
        with pytest.raises(StreamsetFormatError) as exc_info:
            load_streamset(b'{"streams": [], "name": "\xff"}')
        assert "not valid UTF-8" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)

    def test_invalid_utf8_file(self, tmp_path):
        path = tmp_path / "latin1.json"
        path.write_bytes(b'{"streams": [], "name": "\xff"}')
        with pytest.raises(StreamsetFormatError) as exc_info:
            read_streamset(path)
        assert exc_info.value.context["source"] == str(path)

    def test_foreign_version_loads_with_warning(self, caplog):
        text = json.dumps({"schema_version": "other-v9", "streams": []})
        with caplog.at_level(logging.WARNING, logger="energy_integration.stream_spec.streamset"):
            loaded = load_streamset(text)
        assert loaded.schema_version == "other-v9"
        assert "other-v9" in caplog.text

    def test_missing_version_takes_current(self):
        loaded = load_streamset('{"streams": []}')
        assert loaded.schema_version == SCHEMA_VERSION
        assert loaded.name == ""
        assert loaded.intervals_config == IntervalsConfig()


class TestLenientStreams:

    def test_numbers_become_text(self):
        text = json.dumps({"streams": [{
            "name": 7,
            "thermal": "cold",
            "F": {"mode": "fixed", "unit": "mol/s", "value": 3},
            "Hcoeff6": [0, 1.5, 0, 0, 0, 0],
        }]})
        s = load_streamset(text).streams[0]
        assert s.name == "7"
        assert s.flow.value == "3"
        assert s.hcoeff6 == ["0", "1.5", "0", "0", "0", "0"]

    def test_unknown_keys_ignored(self):
        text = json.dumps({"streams": [{"name": "h1", "color": "red"}]})
        assert load_streamset(text).streams[0].name == "h1"

    def test_missing_id_gets_fresh_one(self):
        text = json.dumps({"streams": [{"name": "a"}, {"name": "b"}]})
        a, b = load_streamset(text).streams
        assert a.id and b.id and a.id != b.id


class TestNormalizeIntervalsConfig:

    @pytest.mark.parametrize("raw", [None, [], "x", 3])
    def test_non_object_gives_defaults(self, raw):
        assert normalize_intervals_config(raw) == IntervalsConfig()

    def test_bad_enums_take_defaults(self):
        cfg = normalize_intervals_config({
            "node_rule": "sideways",
            "T_interval_method": 4,
            "mvr_config": {"method": "magic"},
        })
        assert cfg.node_rule == NodeRule.INOUT
        assert cfg.t_interval_method == TGridMethod.DEFAULT
        assert cfg.mvr_config.method == MVRMethod.PIECEWISE

    def test_good_values_kept(self):
        cfg = normalize_intervals_config({
            "node_rule": "custom",
            "T_interval_method": "both",
            "T_nodes_specified_text": "400 300",
            "maxDeltaT": 25,
            "maxnumT": "40",
            "use_clapeyron": 1,
            "mvr_config": {"method": "gdp", "mode": "isentropic", "step_ratio": 0.01},
        })
        assert cfg.node_rule == NodeRule.CUSTOM
        assert cfg.t_interval_method == TGridMethod.BOTH
        assert cfg.t_nodes_specified_text == "400 300"
        assert cfg.max_delta_t == "25"
        assert cfg.max_num_t == "40"
        assert cfg.use_clapeyron is True
        assert cfg.mvr_config.method == MVRMethod.GDP
        assert cfg.mvr_config.mode == "isentropic"
        assert cfg.mvr_config.step_ratio == "0.01"
        assert cfg.mvr_config.isentropic_efficiency == "0.72"

    def test_forbidden_rows(self):
        cfg = normalize_intervals_config({"forbidden_match": [
            {"id": "r1", "hot": "h1", "cold": 5, "Q_lb": 0, "Q_ub": True},
            "junk",
        ]})
        first, second = cfg.forbidden_match
        assert first.id == "r1"
        assert (first.hot, first.cold, first.q_lb, first.q_ub) == ("h1", "", "0", "true")
        assert second.is_blank()
        assert second.id

    def test_mistyped_nodes_text(self):
        cfg = normalize_intervals_config({"T_nodes_specified_text": ["400"]})
        assert cfg.t_nodes_specified_text == ""


class TestStreamsetFactory:

    def test_default_name(self):
        name = default_streamset_name()
        assert name.startswith("streamset-")
        assert name.endswith("Z")

    def test_new_streamset_copies(self, streams, intervals_config):
        ss = new_streamset(streams, intervals_config)
        assert isinstance(ss, Streamset)
        assert ss.name.startswith("streamset-")
        assert ss.streams == streams
        assert ss.streams[0] is not streams[0]
        assert ss.intervals_config is not intervals_config
