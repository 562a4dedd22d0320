"""
Tests for ResponseNormalizer
"""

import logging

import pytest

from classes.json_parser import parse_json_safely
from classes.response_normalizer import (
    EmptyAnalysisResponseError,
    PRIORITY_NO_CHANGE,
    ResponseNormalizer,
)
from classes.tml_parser import ParsedDocumentStructure, parse_tml


@pytest.fixture
def normalizer():
    return ResponseNormalizer()


@pytest.fixture
def structure():
    return ParsedDocumentStructure(columns=("order_dt", "cust_id", "is_active"), formulas=("margin",))


class TestFailFast:

    def test_none_raises(self, normalizer, structure):
        with pytest.raises(EmptyAnalysisResponseError):
            normalizer.validate_and_normalize(None, structure)

    def test_non_object_raises(self, normalizer):
        with pytest.raises(EmptyAnalysisResponseError):
            normalizer.validate_and_normalize("not an object")

    def test_single_object_list_is_unwrapped(self, normalizer):
        out = normalizer.validate_and_normalize([{"industry": "Retail"}])
        assert out["industry"] == "Retail"

    def test_empty_object_is_repaired(self, normalizer, structure):
        out = normalizer.validate_and_normalize({}, structure)
        assert [r["currentName"] for r in out["comparisonTable"]] == list(structure.all_names)
        assert set(out["columnRecommendations"]) == {"critical", "important", "niceToHave"}


class TestRecommendations:
    """columnRecommendations items always carry a complete recommendations record."""

    def test_missing_recommendations_object(self, normalizer):
        results = {"columnRecommendations": {"critical": [{"columnName": "cust_id", "issue": "Abbreviated"}]}}
        item = normalizer.validate_and_normalize(results)["columnRecommendations"]["critical"][0]
        rec = item["recommendations"]
        assert rec["name"] == "cust_id"
        assert "identifier" in rec["description"]
        assert len(rec["synonyms"]) >= 3
        assert "Abbreviated" in rec["rationale"]

    def test_upstream_values_are_kept(self, normalizer, full_analysis):
        out = normalizer.validate_and_normalize(full_analysis)
        rec = out["columnRecommendations"]["critical"][0]["recommendations"]
        assert rec == full_analysis["columnRecommendations"]["critical"][0]["recommendations"]

    def test_name_from_entity_name(self, normalizer):
        results = {"columnRecommendations": {"important": [{"entityName": "order_dt", "recommendations": {}}]}}
        item = normalizer.validate_and_normalize(results)["columnRecommendations"]["important"][0]
        assert item["columnName"] == "order_dt"

    def test_nameless_and_non_object_items_dropped(self, normalizer, caplog):
        results = {"columnRecommendations": {"niceToHave": [{"issue": "?"}, "junk", {"columnName": "a"}]}}
        with caplog.at_level(logging.WARNING, logger="spotmatik_backend"):
            out = normalizer.validate_and_normalize(results)
        assert [i["columnName"] for i in out["columnRecommendations"]["niceToHave"]] == ["a"]
        assert "Dropping" in caplog.text

    def test_synonyms_truncated_to_five(self, normalizer):
        synonyms = ["a", "b", "c", "d", "e", "f", "g"]
        results = {"columnRecommendations": {"critical": [
            {"columnName": "x", "recommendations": {"description": "d", "rationale": "r", "synonyms": synonyms}}
        ]}}
        rec = normalizer.validate_and_normalize(results)["columnRecommendations"]["critical"][0]["recommendations"]
        assert rec["synonyms"] == ["a", "b", "c", "d", "e"]

    def test_comma_separated_synonyms(self, normalizer):
        results = {"columnRecommendations": {"critical": [
            {"columnName": "x", "recommendations": {"synonyms": "alpha, beta, gamma"}}
        ]}}
        rec = normalizer.validate_and_normalize(results)["columnRecommendations"]["critical"][0]["recommendations"]
        assert rec["synonyms"] == ["alpha", "beta", "gamma"]


class TestComparisonRows:

    def test_row_defaults(self, normalizer):
        out = normalizer.validate_and_normalize({"comparisonTable": [{"currentName": "order_dt"}]})
        row = out["comparisonTable"][0]
        assert row["recommendedName"] == "order_dt"
        assert row["currentDescription"] == "None"
        assert row["currentSynonyms"] == "None"
        assert "date" in row["recommendedDescription"]
        assert len(row["recommendedSynonyms"]) >= 3
        assert row["priority"] == PRIORITY_NO_CHANGE

    def test_char_count_always_recomputed(self, normalizer):
        rows = [
            {"currentName": "a", "recommendedDescription": "twelve chars", "descriptionCharCount": 400},
            {"currentName": "b", "recommendedDescription": "x" * 450, "descriptionCharCount": "450/400"},
        ]
        out = normalizer.validate_and_normalize({"comparisonTable": rows})
        for row in out["comparisonTable"]:
            assert row["descriptionCharCount"] == len(row["recommendedDescription"])

    def test_short_synonyms_padded_keeping_upstream(self, normalizer):
        out = normalizer.validate_and_normalize({"comparisonTable": [
            {"currentName": "cust_id", "recommendedSynonyms": ["customer"]}
        ]})
        synonyms = out["comparisonTable"][0]["recommendedSynonyms"]
        assert synonyms[0] == "customer"
        assert 3 <= len(synonyms) <= 5

    @pytest.mark.parametrize("raw, expected", [
        ("Critical", "Critical"),
        ("critical", "Critical"),
        ("Nice to Have", "Nice to Have"),
        ("NiceToHave", "Nice to Have"),
        ("NoChangeNeeded", "No Change Needed"),
        ("important", "Important"),
        ("whatever", "No Change Needed"),
        (None, "No Change Needed"),
    ])
    def test_priority_canonicalized(self, normalizer, raw, expected):
        out = normalizer.validate_and_normalize({"comparisonTable": [{"currentName": "z", "priority": raw}]})
        assert out["comparisonTable"][0]["priority"] == expected

    def test_priority_inferred_from_bucket(self, normalizer):
        results = {
            "columnRecommendations": {"critical": [{"columnName": "cust_id"}]},
            "comparisonTable": [{"currentName": "cust_id"}],
        }
        out = normalizer.validate_and_normalize(results)
        assert out["comparisonTable"][0]["priority"] == "Critical"

    def test_duplicate_rows_collapsed(self, normalizer):
        out = normalizer.validate_and_normalize({"comparisonTable": [
            {"currentName": "a", "recommendedName": "First"},
            {"currentName": "a", "recommendedName": "Second"},
        ]})
        assert [r["recommendedName"] for r in out["comparisonTable"]] == ["First"]

    def test_extra_row_fields_preserved(self, normalizer):
        out = normalizer.validate_and_normalize({"comparisonTable": [{"currentName": "a", "note": "keep me"}]})
        assert out["comparisonTable"][0]["note"] == "keep me"


class TestCompleteness:
    """Every entity the TML declares ends up with a comparison row."""

    def test_missing_entities_injected(self, normalizer, structure, caplog):
        results = {"comparisonTable": [{"currentName": "order_dt", "recommendedDescription": "Order date."}]}
        with caplog.at_level(logging.WARNING, logger="spotmatik_backend"):
            out = normalizer.validate_and_normalize(results, structure)

        names = [r["currentName"] for r in out["comparisonTable"]]
        assert names == ["order_dt", "cust_id", "is_active", "margin"]
        assert "Added 3 missing columns" in caplog.text

        injected = out["comparisonTable"][1]
        assert injected["priority"] == PRIORITY_NO_CHANGE
        assert injected["currentDescription"] == "None"
        assert injected["descriptionCharCount"] == len(injected["recommendedDescription"])

    def test_rows_for_unknown_entities_are_kept(self, normalizer, structure):
        results = {"comparisonTable": [{"currentName": "not_in_tml"}]}
        out = normalizer.validate_and_normalize(results, structure)
        assert len(out["comparisonTable"]) == 5

    def test_total_columns_overwritten(self, normalizer, structure):
        out = normalizer.validate_and_normalize({"totalColumns": 12}, structure)
        assert out["totalColumns"] == 4

    def test_total_columns_matching_string_left_alone(self, normalizer, structure):
        out = normalizer.validate_and_normalize({"totalColumns": "4"}, structure)
        assert out["totalColumns"] == "4"

    @pytest.mark.parametrize("reported", [4.5, "4.5", None, "four"])
    def test_total_columns_inexact_value_overwritten(self, normalizer, structure, reported):
        out = normalizer.validate_and_normalize({"totalColumns": reported}, structure)
        assert out["totalColumns"] == 4

    def test_total_columns_not_added_when_absent(self, normalizer, structure):
        out = normalizer.validate_and_normalize({"industry": "Retail"}, structure)
        assert "totalColumns" not in out

    def test_total_columns_kept_when_extraction_found_nothing(self, normalizer):
        out = normalizer.validate_and_normalize({"totalColumns": 7}, ParsedDocumentStructure())
        assert out["totalColumns"] == 7

    def test_statistics_recomputed(self, normalizer):
        results = {
            "columnsNeedingAttention": 0,
            "statistics": {"descriptionsOver400Chars": 0, "impactLevel": "Low"},
            "comparisonTable": [
                {"currentName": "a", "recommendedDescription": "x" * 401, "priority": "Critical"},
                {"currentName": "b", "recommendedDescription": "short"},
            ],
        }
        out = normalizer.validate_and_normalize(results)
        assert out["statistics"]["descriptionsOver400Chars"] == 1
        assert out["statistics"]["impactLevel"] == "Low"
        assert out["columnsNeedingAttention"] == 1

    def test_input_not_mutated(self, normalizer, structure):
        results = {"comparisonTable": [{"currentName": "order_dt"}]}
        normalizer.validate_and_normalize(results, structure)
        assert results == {"comparisonTable": [{"currentName": "order_dt"}]}


class TestRowGuarantees:

    def test_well_formed_result_round_trips(self, normalizer, full_analysis, yaml_tml):
        out = normalizer.validate_and_normalize(full_analysis, parse_tml(yaml_tml))
        assert out == full_analysis

    def test_every_row_satisfies_floors(self, normalizer, structure):
        results = {"comparisonTable": [
            {"currentName": "order_dt", "recommendedSynonyms": []},
            {"currentName": "cust_id", "recommendedSynonyms": "None", "recommendedDescription": ""},
            "garbage",
            {"recommendedDescription": "no name"},
        ]}
        out = normalizer.validate_and_normalize(results, structure)
        assert {r["currentName"] for r in out["comparisonTable"]} >= set(structure.all_names)
        for row in out["comparisonTable"]:
            assert len(row["recommendedSynonyms"]) >= 3
            assert row["descriptionCharCount"] == len(row["recommendedDescription"])


def test_end_to_end_fenced_response(scenario_tml, scenario_response):
    structure = parse_tml(scenario_tml)
    assert structure.columns == ("order_dt", "cust_id", "is_active")

    parsed = parse_json_safely(scenario_response)
    assert parsed["comparisonTable"][0]["currentName"] == "order_dt"

    out = ResponseNormalizer().validate_and_normalize(parsed, structure)
    rows = {r["currentName"]: r for r in out["comparisonTable"]}
    assert len(out["comparisonTable"]) == 3

    assert rows["order_dt"]["priority"] == "Important"
    assert rows["order_dt"]["recommendedName"] == "Order Date"
    assert rows["cust_id"]["priority"] == PRIORITY_NO_CHANGE
    assert "identifier" in rows["cust_id"]["recommendedDescription"]
    assert rows["is_active"]["priority"] == PRIORITY_NO_CHANGE
    assert "status" in rows["is_active"]["recommendedDescription"]
    for row in rows.values():
        assert len(row["recommendedSynonyms"]) >= 3
