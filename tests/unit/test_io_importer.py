"""Unit tests for import classification."""

import pytest

from screhelper.core.errors import EmptyInput, MissingColumns
from screhelper.io.importer import (
    UNRESOLVED_CRITERION,
    UNRESOLVED_REASON,
    ImportKind,
    classify_import,
    resolve_verdict,
)


class TestRouting:
    """Which path a table takes."""

    def test_fresh_records(self):
        rows = [
            {"title": "T1", "abstract": "A1", "doi": "10.1/a", "journal": "Lancet"},
            {"title": "T2", "abstract": "A2", "doi": None, "journal": None},
        ]
        result = classify_import(rows)
        assert result.kind == ImportKind.FRESH
        assert [a.title for a in result.articles] == ["T1", "T2"]
        assert result.articles[0].source == "Lancet"
        assert result.articles[0].doi == "10.1/a"
        assert result.articles[1].doi is None
        assert result.classified == []
        assert result.original_rows == rows

    def test_classification_column_forces_previous_path(self):
        rows = [{"title": "T", "abstract": "A", "classification": "Include", "reason": "r", "criterion": "1. c"}]
        result = classify_import(rows)
        assert result.kind == ImportKind.PREVIOUS
        assert result.is_previous

    @pytest.mark.parametrize("marker", ["reason", "criterion", "ai_include", "final_include", "manual_criterion"])
    def test_any_marker_selects_previous_path(self, marker):
        result = classify_import([{"title": "T", "abstract": "A", marker: None}])
        assert result.kind == ImportKind.PREVIOUS

    def test_source_aliases_in_order(self):
        result = classify_import([{"title": "T", "abstract": "A", "venue": "NeurIPS", "publication": "Proc."}])
        assert result.articles[0].source == "Proc."


class TestFailures:
    def test_empty_input(self):
        with pytest.raises(EmptyInput):
            classify_import([])

    def test_missing_columns_are_named(self):
        with pytest.raises(MissingColumns) as exc_info:
            classify_import([{"name": "x"}])
        assert exc_info.value.missing == ["title", "abstract"]

        with pytest.raises(MissingColumns) as exc_info:
            classify_import([{"title": "x", "classification": "Include"}])
        assert exc_info.value.missing == ["abstract"]

    def test_incomplete_rows_are_dropped(self):
        rows = [
            {"title": "T1", "abstract": "A1"},
            {"title": "   ", "abstract": "A2"},
            {"title": "T3", "abstract": None},
        ]
        result = classify_import(rows)
        assert len(result.articles) == 1
        assert result.dropped_rows == 2
        assert result.original_rows == [rows[0]]


class TestPreviousResults:
    def test_schema_priority(self):
        row = {
            "classification": None,
            "final_include": "",
            "manual_include": "Exclude",
            "manual_reason": "manual",
            "manual_criterion": "1. animal",
            "ai_include": True,
            "ai_reason": "ai",
            "ai_criterion": "1. rct",
        }
        verdict = resolve_verdict(row)
        assert (verdict.include, verdict.reason, verdict.criterion) == (False, "manual", "1. animal")

    def test_new_schema_first(self):
        row = {
            "classification": "Include",
            "reason": "new",
            "criterion": "1. rct",
            "final_include": False,
            "final_reason": "old",
        }
        verdict = resolve_verdict(row)
        assert (verdict.include, verdict.reason) == (True, "new")

    def test_legacy_ai_schema(self):
        verdict = resolve_verdict({"ai_include": 1.0, "ai_reason": "legacy", "ai_criterion": "2. adults"})
        assert verdict.include is True
        assert verdict.criterion == "2. adults"

    def test_unresolved_rows_default_to_exclude(self):
        verdict = resolve_verdict({"classification": None, "reason": None})
        assert verdict.include is False
        assert verdict.reason == UNRESOLVED_REASON
        assert verdict.criterion == UNRESOLVED_CRITERION

    def test_criteria_recovered_from_first_row(self):
        rows = [
            {
                "title": "T",
                "abstract": "A",
                "classification": "Exclude",
                "reason": "animal model",
                "criterion": "1. animal study",
                "inclusion_criteria": "clinical trial | adults",
                "exclusion_criteria": "animal study",
            }
        ]
        result = classify_import(rows)
        assert result.criteria.inclusion == ("clinical trial", "adults")
        assert result.criteria.exclusion == ("animal study",)
        record = result.classified[0]
        assert record.classification.include is False
        assert record.original_data == rows[0]

    def test_criteria_need_both_lists(self):
        rows = [{"title": "T", "abstract": "A", "classification": "Include", "inclusion_criteria": "x"}]
        assert classify_import(rows).criteria is None
