"""engine/mapper.py tests"""

import pytest

from pgscout.engine.compiler import compile_subsystem
from pgscout.engine.mapper import ColumnIndex, bind, first_value, map_result
from pgscout.model.result import QueryResult

from tests.mocks import (
    BLOCKS_DEFINITION,
    BLOCKS_RESULT,
    PLAIN_DEFINITION,
    PLAIN_RESULT,
    TABLES_DEFINITION,
    TABLES_RESULT,
    definition,
)


def descriptors(name, body, **kwargs):
    return compile_subsystem("postgres", definition(name, body), **kwargs).descriptors


def group_definition(columns):
    return {
        "query": "SELECT ...",
        "metrics": [
            {"name": "bytes_total", "usage": "COUNTER", "labels": ["device"],
             "labeled_values": {"op": columns}, "description": "Bytes by operation."},
        ],
    }


class TestColumnIndex:
    """ColumnIndex"""

    def test_duplicate_names_keep_all_positions(self):
        index = ColumnIndex(["a", "b", "a"])

        assert index.positions("a") == (0, 2)
        assert index.positions("missing") == ()
        assert "b" in index
        assert "c" not in index


class TestFirstValue:
    """first_value"""

    @pytest.mark.parametrize("row, expected", [
        (("1.5",), 1.5),
        ((None,), None),
        (("",), None),
        (("abc",), None),
        (("-3",), -3.0),
    ])
    def test_single_cell(self, row, expected):
        assert first_value(row, [0]) == expected

    def test_first_non_null_wins(self):
        assert first_value((None, "", "7", "8"), [0, 1, 2, 3]) == 7.0

    def test_skips_unparsable(self):
        assert first_value(("n/a", "2"), [0, 1]) == 2.0


class TestMapResult:
    """map_result"""

    def test_plain_metric(self, points):
        """row {label1: l1, metric1: 0.123} gives one point"""
        count = map_result(PLAIN_RESULT, descriptors("custom", PLAIN_DEFINITION), points.append)

        assert count == 1
        [point] = points
        assert point.name == "postgres_custom_metric1"
        assert point.label_names == ("label1",)
        assert point.label_values == ("l1",)
        assert point.value == pytest.approx(0.123)

    def test_labeled_group_three_points(self, points):
        result = QueryResult(colnames=("device", "read", "write", "discard"), rows=[("sda", "1", "2", "3")])

        count = map_result(result, descriptors("disk", group_definition(["read", "write", "discard"])), points.append)

        assert count == 3
        assert {p.label_values[:-1] for p in points} == {("sda",)}
        assert [p.label_values[-1] for p in points] == ["read", "write", "discard"]
        assert [p.value for p in points] == [1.0, 2.0, 3.0]
        assert all(p.label_names == ("device", "op") for p in points)

    def test_labeled_group_renames(self, points):
        map_result(BLOCKS_RESULT, descriptors("statio", BLOCKS_DEFINITION), points.append)

        orders = [(p.label_values, p.value) for p in points if p.label_values[0] == "orders"]
        assert orders == [
            (("orders", "heap_read"), 120.0),
            (("orders", "heap_hit"), 98000.0),
            (("orders", "idx_blks_read"), 15.0),
        ]

    def test_null_value_yields_no_point(self, points):
        result = QueryResult(colnames=("label1", "metric1"), rows=[("l1", None)])

        assert map_result(result, descriptors("custom", PLAIN_DEFINITION), points.append) == 0
        assert points == []

    def test_null_in_group_yields_two_points(self, points):
        result = QueryResult(colnames=("device", "read", "write", "discard"), rows=[("sda", "1", None, "3")])

        count = map_result(result, descriptors("disk", group_definition(["read", "write", "discard"])), points.append)

        assert count == 2
        assert [p.label_values for p in points] == [("sda", "read"), ("sda", "discard")]

    def test_non_numeric_value_dropped(self, points):
        result = QueryResult(colnames=("label1", "metric1"), rows=[("l1", "abc"), ("l2", "5")])

        map_result(result, descriptors("custom", PLAIN_DEFINITION), points.append)

        assert [(p.label_values, p.value) for p in points] == [(("l2",), 5.0)]

    def test_null_label_becomes_empty_string(self, points):
        result = QueryResult(colnames=("label1", "metric1"), rows=[(None, "1")])

        map_result(result, descriptors("custom", PLAIN_DEFINITION), points.append)

        assert points[0].label_values == ("",)

    def test_missing_label_column_skips_descriptor(self, points):
        result = QueryResult(colnames=("other", "metric1"), rows=[("x", "1")])

        assert map_result(result, descriptors("custom", PLAIN_DEFINITION), points.append) == 0

    def test_missing_value_column_yields_nothing(self, points):
        result = QueryResult(colnames=("label1",), rows=[("l1",)])

        assert map_result(result, descriptors("custom", PLAIN_DEFINITION), points.append) == 0

    def test_database_label_injected(self, points):
        map_result(TABLES_RESULT, descriptors("table", TABLES_DEFINITION), points.append, database="app")

        assert [p.label_values for p in points] == [
            ("app", "public", "orders"),
            ("app", "public", "customers"),
        ]
        assert points[0].labels() == {"database": "app", "schema": "public", "table": "orders"}

    def test_factor_applied(self, points):
        body = {"query": "SELECT 1", "metrics": [
            {"name": "time_seconds", "usage": "GAUGE", "value": "ms", "factor": 0.001, "description": "Time."},
        ]}
        result = QueryResult(colnames=("ms",), rows=[("1500",)])

        map_result(result, descriptors("custom", body), points.append)

        assert points[0].value == pytest.approx(1.5)

    def test_const_labels_in_point_labels(self, points):
        descs = descriptors("custom", PLAIN_DEFINITION, const_labels={"cluster": "main"})

        map_result(PLAIN_RESULT, descs, points.append)

        assert points[0].labels() == {"cluster": "main", "label1": "l1"}
        assert points[0].label_values == ("l1",)

    def test_bind_reports_missing_labels(self):
        [binding] = bind(descriptors("custom", PLAIN_DEFINITION), ["metric1"])

        assert not binding.usable
        assert binding.missing_labels == ["label1"]
