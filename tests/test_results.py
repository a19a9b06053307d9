# -*- coding: utf-8 -*-
"""Tests for solver response parsing, result formatting and detail caches."""

import math

import pytest

from energy_integration.exceptions import SolverResponseError
from energy_integration.stream_spec.results import (
    DetailLookupCache,
    flatten_solution_report,
    format_heat,
    parse_build_response,
    parse_detail_matrix,
    parse_solve_response,
    parse_stream_detail,
)


@pytest.fixture
def solve_body():
    return {
        "ok": True,
        "hot_names": ["h1", "h2"],
        "cold_names": ["c1"],
        "edges": [
            {"hot": "h1", "cold": "c1", "q_total": 640},
            {"hot": "h2", "cold": "", "q_total": 10},
            {"hot": None, "cold": "c1", "q_total": 5},
            {"hot": "h2", "cold": "c1", "q_total": "12.5"},
        ],
        "obj_value": "1.5e4",
        "solution_report": {
            "status": "optimal",
            "iterations": 12,
            "utilities": {"steam": "120 kW", "hx": 3},
        },
        "economic_report": {
            "column_labels": ["cost"],
            "row_labels": ["total", 2],
            "data": [["1.0"], [3]],
        },
    }


class TestSolveResponse:

    def test_parse(self, solve_body):
        result = parse_solve_response(solve_body)
        assert result.hot_names == ["h1", "h2"]
        assert result.cold_names == ["c1"]
        assert [(e.hot, e.cold, e.q_total) for e in result.edges] == [
            ("h1", "c1", 640.0),
            ("h2", "c1", 12.5),
        ]
        assert result.obj_value == 15000.0
        assert result.economic_report.row_labels == ["total", "2"]
        assert result.economic_report.data == [["1.0"], ["3"]]
        assert result.solution_report["status"] == "optimal"
        assert result.solution_report["iterations"] == "12"
        assert result.solution_report["utilities"] == {"steam": "120 kW", "hx": "3"}

    def test_missing_fields_default(self):
        result = parse_solve_response({"ok": True})
        assert result.hot_names == []
        assert result.edges == []
        assert math.isnan(result.obj_value)
        assert result.solution_report is None
        assert result.economic_report is None

    def test_error_message_from_body(self):
        body = {"ok": False, "error": {"message": "Infeasible"}}
        with pytest.raises(SolverResponseError) as exc_info:
            parse_solve_response(body)
        assert exc_info.value.message == "Infeasible"
        assert exc_info.value.context["body"] == body

    def test_default_message(self):
        with pytest.raises(SolverResponseError) as exc_info:
            parse_solve_response({"ok": False})
        assert exc_info.value.message == "Solve failed."

    def test_http_failure_with_ok_body(self):
        with pytest.raises(SolverResponseError):
            parse_solve_response({"ok": True}, http_ok=False)

    @pytest.mark.parametrize("body", [None, [], "ok"])
    def test_non_object_body(self, body):
        with pytest.raises(SolverResponseError):
            parse_solve_response(body)


class TestBuildResponse:

    def test_plot_passed_through(self):
        plot = {"data": [{"type": "scatter"}], "layout": {"title": "HEN"}}
        assert parse_build_response({"ok": True, "plot": plot}).plot == plot

    def test_missing_plot(self):
        with pytest.raises(SolverResponseError) as exc_info:
            parse_build_response({"ok": True})
        assert exc_info.value.message == "Build response has no plot."

    def test_failure(self):
        with pytest.raises(SolverResponseError) as exc_info:
            parse_build_response({"ok": False, "error": {"message": "bad stream h1"}})
        assert exc_info.value.message == "bad stream h1"


class TestDetailResponses:

    def test_detail_matrix(self):
        body = {"ok": True, "rows": [1, 2], "cols": ["a"], "q": [[1, "2"], [None, "x"]]}
        m = parse_detail_matrix(body, "h1", "c1")
        assert (m.hot, m.cold) == ("h1", "c1")
        assert m.rows == ["1", "2"]
        assert m.q[0] == [1.0, 2.0]
        assert m.q[1][0] == 0.0
        assert math.isnan(m.q[1][1])

    def test_detail_matrix_failure(self):
        with pytest.raises(SolverResponseError) as exc_info:
            parse_detail_matrix({"ok": False}, "h1", "c1")
        assert exc_info.value.message == "Failed to load detail matrix."

    def test_stream_detail(self):
        body = {
            "ok": True,
            "unit": "K",
            "q_str": ["10.0", "20.0"],
            "describes": ["T1", "T2"],
            "t_upper": [400, 350],
            "t_lower": [350, 300],
        }
        d = parse_stream_detail(body, "h1", "°C")
        assert d.name == "h1"
        assert d.unit == "K"
        assert d.t_upper == [400.0, 350.0]
        assert d.describes == ["T1", "T2"]

    def test_stream_detail_failure(self):
        with pytest.raises(SolverResponseError):
            parse_stream_detail({"ok": True}, "h1", "K", http_ok=False)


class TestFormatting:

    @pytest.mark.parametrize("value,expected", [
        (0, ""),
        (0.0, ""),
        (float("nan"), ""),
        (float("inf"), ""),
        (1234567, "1.23e+6"),
        (-2000000, "-2.00e+6"),
        (0.005, "5.00e-3"),
        (123.44, "123.4"),
        (100, "100.0"),
        (42.5, "42.50"),
        (0.01, "0.01"),
    ])
    def test_format_heat(self, value, expected):
        assert format_heat(value) == expected

    def test_flatten_report(self):
        rows = flatten_solution_report({
            "status": "optimal",
            "utilities": {"steam": "120 kW", "cw": 30},
            "note": None,
        })
        assert [(r.key, r.value, r.indent) for r in rows] == [
            ("status", "optimal", 1),
            ("utilities", "", 1),
            ("steam", "120 kW", 2),
            ("cw", "30", 2),
            ("note", "", 1),
        ]

    def test_flatten_empty(self):
        assert flatten_solution_report(None) == []


class TestDetailLookupCache:

    def test_fetch_once(self):
        calls = []

        def fetch(key):
            calls.append(key)
            return f"detail {key}"

        cache = DetailLookupCache("match", max_size=4)
        assert cache.get_or_fetch(("h1", "c1"), fetch) == "detail ('h1', 'c1')"
        assert cache.get_or_fetch(("h1", "c1"), fetch) == "detail ('h1', 'c1')"
        assert calls == [("h1", "c1")]
        assert cache.get_statistics() == {"size": 1, "hits": 1, "misses": 1}

    def test_clear_forces_refetch(self):
        calls = []
        cache = DetailLookupCache("stream", max_size=4)
        cache.get_or_fetch(("h1", "K"), lambda k: calls.append(k) or "a")
        cache.clear()
        assert len(cache) == 0
        cache.get_or_fetch(("h1", "K"), lambda k: calls.append(k) or "b")
        assert len(calls) == 2

    def test_fetch_straddling_clear_not_cached(self):
        cache = DetailLookupCache("match", max_size=4)

        def fetch(key):
            cache.clear()
            return "stale"

        assert cache.get_or_fetch(("h1", "c1"), fetch) == "stale"
        assert ("h1", "c1") not in cache

    def test_fetch_error_not_cached(self):
        cache = DetailLookupCache("match", max_size=4)

        def fetch(key):
            raise SolverResponseError("Failed to load detail matrix.")

        with pytest.raises(SolverResponseError):
            cache.get_or_fetch(("h1", "c1"), fetch)
        assert len(cache) == 0

    def test_lru_eviction(self):
        cache = DetailLookupCache("match", max_size=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")
        cache.put("c", 3)
        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache

    def test_selection_tokens(self):
        cache = DetailLookupCache("match", max_size=2)
        first = cache.select(("h1", "c1"))
        second = cache.select(("h2", "c1"))
        assert not cache.is_current(first)
        assert cache.is_current(second)

    def test_default_size_from_config(self, stream_spec_config):
        assert DetailLookupCache("match").max_size == stream_spec_config.detail_cache_size
