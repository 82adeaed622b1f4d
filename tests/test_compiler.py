"""engine/compiler.py tests"""

import logging

import pytest

from pgscout.engine.compiler import (
    build_fqname,
    compile_subsystem,
    compile_subsystems,
    definition_problems,
    validate_subsystems,
)
from pgscout.model.errors import DefinitionError
from pgscout.model.subsystem import MetricKind, SubsystemDefinition

from tests.mocks import BLOCKS_DEFINITION, PLAIN_DEFINITION, TABLES_DEFINITION, XACT_DEFINITION, definition


def metric(**overrides) -> dict:
    body = {"name": "m", "usage": "GAUGE", "value": "v", "description": "test metric"}
    body.update(overrides)
    return body


class TestBuildFqname:
    """Fully qualified metric names"""

    def test_joins_parts(self):
        assert build_fqname("postgres", "activity", "connections") == "postgres_activity_connections"

    def test_skips_empty_parts(self):
        assert build_fqname("", "activity", "connections") == "activity_connections"
        assert build_fqname("node", "", "up") == "node_up"


class TestCompileSubsystem:
    """compile_subsystem"""

    def test_plain_descriptor(self):
        descset = compile_subsystem("postgres", definition("custom", PLAIN_DEFINITION))

        assert descset.subsystem == "custom"
        assert descset.query == PLAIN_DEFINITION["query"]
        assert not descset.is_multi_database
        [desc] = descset.descriptors
        assert desc.name == "postgres_custom_metric1"
        assert desc.kind is MetricKind.GAUGE
        assert desc.label_names == ("label1",)
        assert desc.value == "metric1"
        assert not desc.database_injected

    def test_labeled_values_append_group_key(self):
        descset = compile_subsystem("postgres", definition("statio", BLOCKS_DEFINITION))

        [desc] = descset.descriptors
        assert desc.label_names == ("relname", "access")
        assert desc.row_labels == ("relname",)
        [(key, columns)] = desc.labeled_values
        assert key == "access"
        assert [(c.source, c.label_value) for c in columns] == [
            ("heap_blks_read", "heap_read"),
            ("heap_blks_hit", "heap_hit"),
            ("idx_blks_read", "idx_blks_read"),
        ]

    def test_per_database_injects_database_label_first(self):
        descset = compile_subsystem("postgres", definition("table", TABLES_DEFINITION))

        assert descset.is_multi_database
        assert descset.matches("app")
        assert not descset.matches("postgres")
        [desc] = descset.descriptors
        assert desc.label_names == ("database", "schema", "table")
        assert desc.database_injected
        assert desc.row_labels == ("schema", "table")

    def test_existing_database_label_not_duplicated(self):
        body = dict(XACT_DEFINITION, databases=".+")
        descset = compile_subsystem("postgres", definition("xact", body))

        [desc] = descset.descriptors
        assert desc.label_names == ("database",)
        assert not desc.database_injected

    @pytest.mark.parametrize("name, body", [
        ("custom", PLAIN_DEFINITION),
        ("statio", BLOCKS_DEFINITION),
        ("table", TABLES_DEFINITION),
        ("xact", dict(XACT_DEFINITION, databases=".+")),
    ])
    def test_label_count_is_distinct_union(self, name, body):
        """labels = plain labels + group keys + database when per-database"""
        descset = compile_subsystem("postgres", definition(name, body))

        for desc, spec in zip(descset.descriptors, body["metrics"]):
            expected = set(spec.get("labels", [])) | set(spec.get("labeled_values", {}))
            if body.get("databases"):
                expected.add("database")
            assert len(desc.label_names) == len(expected)
            assert set(desc.label_names) == expected

    def test_compilation_is_deterministic(self):
        defn = definition("statio", BLOCKS_DEFINITION)

        first = compile_subsystem("postgres", defn, {"cluster": "main", "az": "a"})
        second = compile_subsystem("postgres", defn, {"az": "a", "cluster": "main"})

        assert first.query == second.query
        assert first.descriptors == second.descriptors

    def test_const_labels_sorted(self):
        descset = compile_subsystem("postgres", definition("custom", PLAIN_DEFINITION), {"z": "1", "a": "2"})

        assert descset.descriptors[0].const_labels == (("a", "2"), ("z", "1"))

    def test_usage_is_case_insensitive(self):
        defn = definition("custom", {"query": "SELECT 1 AS v", "metrics": [metric(usage=" counter ")]})

        assert compile_subsystem("postgres", defn).descriptors[0].kind is MetricKind.COUNTER

    def test_factor_is_kept(self):
        defn = definition("custom", {"query": "SELECT 1 AS v", "metrics": [metric(factor=0.001)]})

        assert compile_subsystem("postgres", defn).descriptors[0].factor == 0.001

    @pytest.mark.parametrize("body, fragment", [
        ({"query": "SELECT 1", "metrics": [metric(usage="HISTOGRAM")]}, "unknown usage"),
        ({"query": "SELECT 1", "databases": "([", "metrics": [metric()]}, "invalid databases pattern"),
        ({"query": "", "metrics": [metric()]}, "query is required"),
        ({"query": "SELECT 1", "metrics": [metric(), metric()]}, "defined more than once"),
        ({"query": "SELECT 1", "metrics": [metric(description="")]}, "description is required"),
        ({"query": "SELECT 1", "metrics": [metric(value=None)]}, "one of 'value' or 'labeled_values'"),
        ({"query": "SELECT 1", "metrics": [metric(labeled_values={"op": ["a"]})]}, "mutually exclusive"),
        ({"query": "SELECT 1", "metrics": [metric(name="bad-name")]}, "invalid metric name"),
        ({"query": "SELECT 1", "metrics": [metric(labels=["a", "a"])]}, "duplicate label names"),
        ({"query": "SELECT 1", "metrics": [metric(value=None, labeled_values={"op": ["a"], "kind": ["b"]})]},
         "single label key"),
        ({"query": "SELECT 1", "metrics": [metric(value=None, labeled_values={"op": []})]}, "has no columns"),
    ])
    def test_invalid_definitions_raise(self, body, fragment):
        with pytest.raises(DefinitionError) as exc_info:
            compile_subsystem("postgres", definition("custom", body))

        assert exc_info.value.subsystem == "custom"
        assert fragment in str(exc_info.value)

    def test_invalid_subsystem_name(self):
        problems = definition_problems(definition("1st", PLAIN_DEFINITION))

        assert problems == ["invalid subsystem name '1st'"]

    def test_subsystem_without_metrics_compiles_empty(self):
        descset = compile_subsystem("postgres", SubsystemDefinition(name="empty"))

        assert descset.descriptors == ()


class TestCompileSubsystems:
    """compile_subsystems and validate_subsystems"""

    def test_bad_subsystem_skipped_others_compiled(self, caplog):
        subsystems = {
            "good": definition("good", PLAIN_DEFINITION),
            "bad": definition("bad", {"query": "SELECT 1", "metrics": [metric(usage="SUMMARY")]}),
        }

        with caplog.at_level(logging.WARNING):
            sets = compile_subsystems("postgres", subsystems)

        assert [s.subsystem for s in sets] == ["good"]
        assert "create metrics descriptors set failed" in caplog.text
        assert "bad" in caplog.text

    def test_sorted_by_name(self):
        subsystems = {
            "zeta": definition("zeta", PLAIN_DEFINITION),
            "alpha": definition("alpha", PLAIN_DEFINITION),
        }

        assert [s.subsystem for s in compile_subsystems("postgres", subsystems)] == ["alpha", "zeta"]

    def test_validate_reports_only_broken(self):
        result = validate_subsystems([
            definition("good", PLAIN_DEFINITION),
            definition("bad", {"query": "", "metrics": [metric()]}),
        ])

        assert list(result) == ["bad"]
        assert result["bad"] == ["query is required when metrics are defined"]
