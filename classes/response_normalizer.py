# classes/response_normalizer.py

import copy
import logging
from typing import Any, Dict, List, Optional

from classes.base_utils import BaseUtils
from classes.fallback_synthesis import (
    MAX_SYNONYMS,
    MIN_SYNONYMS,
    generate_fallback_description,
    generate_fallback_rationale,
    generate_fallback_synonyms,
)
from classes.tml_parser import ParsedDocumentStructure

logger = logging.getLogger("spotmatik_backend")


class EmptyAnalysisResponseError(Exception):
    pass


PRIORITY_CRITICAL = "Critical"
PRIORITY_IMPORTANT = "Important"
PRIORITY_NICE_TO_HAVE = "Nice to Have"
PRIORITY_NO_CHANGE = "No Change Needed"

# columnRecommendations bucket -> comparisonTable priority
RECOMMENDATION_BUCKETS = {
    "critical": PRIORITY_CRITICAL,
    "important": PRIORITY_IMPORTANT,
    "niceToHave": PRIORITY_NICE_TO_HAVE,
}

_PRIORITY_ALIASES = {
    "critical": PRIORITY_CRITICAL,
    "high": PRIORITY_CRITICAL,
    "important": PRIORITY_IMPORTANT,
    "medium": PRIORITY_IMPORTANT,
    "nicetohave": PRIORITY_NICE_TO_HAVE,
    "low": PRIORITY_NICE_TO_HAVE,
    "nochangeneeded": PRIORITY_NO_CHANGE,
    "nochange": PRIORITY_NO_CHANGE,
    "none": PRIORITY_NO_CHANGE,
}

NONE_SENTINEL = "None"


class ResponseNormalizer(BaseUtils):
    """
    Makes an analysis result safe to hand to the UI/export layer.

    Every recommendation gets a complete `recommendations` record, every comparison row gets every
    field, every entity the TML declares gets a comparison row, and counts the LLM reports about
    itself are replaced by what the TML actually contains. Gaps are filled deterministically from
    the entity name and logged as warnings, since they mean the upstream generation under-delivered.

    The only error raised is EmptyAnalysisResponseError, when there is no result object at all.
    """

    def __init__(self, description_char_limit: int = 400):
        self.description_char_limit = description_char_limit

    def validate_and_normalize(
        self,
        results: Optional[Dict[str, Any]],
        structure: Optional[ParsedDocumentStructure] = None,
    ) -> Dict[str, Any]:
        if results is None:
            raise EmptyAnalysisResponseError("No response received from the AI provider.")
        if isinstance(results, list) and len(results) == 1 and isinstance(results[0], dict):
            results = results[0]
        if not isinstance(results, dict):
            raise EmptyAnalysisResponseError(
                f"AI provider response is not an object (got {type(results).__name__})."
            )

        out = copy.deepcopy(results)

        bucket_priority = self._normalize_recommendations(out)
        self._normalize_comparison_table(out, bucket_priority)
        if structure is not None:
            self._add_missing_rows(out, structure)
            self._reconcile_total_columns(out, structure)
        self._recompute_statistics(out)

        return out

    # -----------------------
    # Column recommendations
    # -----------------------

    def _normalize_recommendations(self, results: dict) -> Dict[str, str]:
        """
        Completes every item of every severity bucket.
        Returns entity name -> priority of the bucket it was found in (first bucket wins).
        """
        recs = results.get("columnRecommendations")
        if not isinstance(recs, dict):
            if recs is not None:
                logger.warning("columnRecommendations is not an object, replacing it")
            recs = {}
            results["columnRecommendations"] = recs

        bucket_priority: Dict[str, str] = {}
        for bucket, priority in RECOMMENDATION_BUCKETS.items():
            items = recs.get(bucket)
            if not isinstance(items, list):
                items = []

            normalized = []
            for item in items:
                item = self._normalize_recommendation_item(item, bucket)
                if item is None:
                    continue
                normalized.append(item)
                bucket_priority.setdefault(item["columnName"], priority)
            recs[bucket] = normalized

        return bucket_priority

    def _normalize_recommendation_item(self, item, bucket: str) -> Optional[dict]:
        if not isinstance(item, dict):
            logger.warning(f"Dropping non-object entry in columnRecommendations.{bucket}: {item!r}")
            return None

        recommendations = item.get("recommendations")
        if not isinstance(recommendations, dict):
            recommendations = {}

        name = (
            self._coerce_field_to_str(item.get("columnName"))
            or self._coerce_field_to_str(item.get("entityName"))
            or self._coerce_field_to_str(recommendations.get("name"))
        )
        if not name:
            logger.warning(f"Dropping columnRecommendations.{bucket} entry without a column name")
            return None

        item["columnName"] = name
        issue = self._coerce_field_to_str(item.get("issue"))
        item["issue"] = issue

        if not self._coerce_field_to_str(recommendations.get("name")):
            recommendations["name"] = name

        description = self._coerce_field_to_str(recommendations.get("description"))
        if not description:
            logger.warning(f"Generating fallback description for '{name}' ({bucket})")
            description = generate_fallback_description(name)
        recommendations["description"] = description

        recommendations["synonyms"] = self._complete_synonyms(
            recommendations.get("synonyms"), name, f"{bucket} recommendation"
        )

        if not self._coerce_field_to_str(recommendations.get("rationale")):
            logger.warning(f"Generating fallback rationale for '{name}' ({bucket})")
            recommendations["rationale"] = generate_fallback_rationale(name, issue)

        item["recommendations"] = recommendations
        return item

    # -----------------------
    # Comparison table
    # -----------------------

    def _normalize_comparison_table(self, results: dict, bucket_priority: Dict[str, str]) -> None:
        rows = results.get("comparisonTable")
        if not isinstance(rows, list):
            if rows is not None:
                logger.warning("comparisonTable is not a list, replacing it")
            rows = []

        normalized: List[dict] = []
        seen = set()
        for row in rows:
            row = self._normalize_row(row, bucket_priority)
            if row is None:
                continue
            if row["currentName"] in seen:
                logger.warning(f"Dropping duplicate comparisonTable row for '{row['currentName']}'")
                continue
            seen.add(row["currentName"])
            normalized.append(row)

        results["comparisonTable"] = normalized

    def _normalize_row(self, row, bucket_priority: Dict[str, str]) -> Optional[dict]:
        if not isinstance(row, dict):
            logger.warning(f"Dropping non-object comparisonTable row: {row!r}")
            return None

        current_name = (
            self._coerce_field_to_str(row.get("currentName"))
            or self._coerce_field_to_str(row.get("columnName"))
            or self._coerce_field_to_str(row.get("recommendedName"))
        )
        if not current_name:
            logger.warning("Dropping comparisonTable row without a column name")
            return None

        out = dict(row)
        out["currentName"] = current_name
        out["recommendedName"] = self._coerce_field_to_str(row.get("recommendedName")) or current_name
        out["currentDescription"] = self._coerce_field_to_str(row.get("currentDescription")) or NONE_SENTINEL

        description = self._coerce_field_to_str(row.get("recommendedDescription"))
        if not description:
            logger.warning(f"Generating fallback description for comparison row '{current_name}'")
            description = generate_fallback_description(current_name)
        out["recommendedDescription"] = description

        current_synonyms = self._coerce_field_to_list(row.get("currentSynonyms"))
        out["currentSynonyms"] = current_synonyms or NONE_SENTINEL
        out["recommendedSynonyms"] = self._complete_synonyms(
            row.get("recommendedSynonyms"), current_name, "comparison row"
        )

        out["priority"] = self._canonical_priority(row.get("priority"), bucket_priority.get(current_name))
        # never trust the upstream count
        out["descriptionCharCount"] = len(description)
        return out

    def _build_missing_row(self, name: str) -> dict:
        description = generate_fallback_description(name)
        return {
            "currentName": name,
            "recommendedName": name,
            "currentDescription": NONE_SENTINEL,
            "recommendedDescription": description,
            "currentSynonyms": NONE_SENTINEL,
            "recommendedSynonyms": generate_fallback_synonyms(name),
            "priority": PRIORITY_NO_CHANGE,
            "descriptionCharCount": len(description),
        }

    # -----------------------
    # Cross-checks against the TML
    # -----------------------

    def _add_missing_rows(self, results: dict, structure: ParsedDocumentStructure) -> None:
        rows = results["comparisonTable"]
        present = {r["currentName"] for r in rows}

        missing = []
        for name in structure.all_names:
            if name not in present:
                present.add(name)
                missing.append(name)

        if not missing:
            return

        for name in missing:
            rows.append(self._build_missing_row(name))
        logger.warning(
            f"Added {len(missing)} missing columns to comparisonTable with fallback descriptions: "
            f"{', '.join(missing)}"
        )

    def _reconcile_total_columns(self, results: dict, structure: ParsedDocumentStructure) -> None:
        if "totalColumns" not in results:
            return
        expected = structure.total_columns + structure.total_formulas
        if expected == 0:
            logger.warning("TML extraction found no columns, keeping the reported totalColumns")
            return

        reported = results.get("totalColumns")
        try:
            matches = float(reported) == expected
        except (TypeError, ValueError):
            matches = False
        if not matches:
            logger.warning(f"Correcting totalColumns from {reported!r} to {expected} (TML parser count)")
            results["totalColumns"] = expected

    def _recompute_statistics(self, results: dict) -> None:
        rows = results["comparisonTable"]
        if "columnsNeedingAttention" in results:
            results["columnsNeedingAttention"] = sum(1 for r in rows if r["priority"] != PRIORITY_NO_CHANGE)

        stats = results.get("statistics")
        if isinstance(stats, dict):
            stats["descriptionsOver400Chars"] = sum(
                1 for r in rows if r["descriptionCharCount"] > self.description_char_limit
            )

    # -----------------------
    # Helpers
    # -----------------------

    def _complete_synonyms(self, value, name: str, where: str) -> List[str]:
        synonyms = self._dedupe_keep_order(self._coerce_field_to_list(value), case_insensitive=True)
        if len(synonyms) < MIN_SYNONYMS:
            logger.warning(f"Generating fallback synonyms for '{name}' ({where}, had {len(synonyms)})")
            synonyms = generate_fallback_synonyms(name, existing=synonyms)
        return synonyms[:MAX_SYNONYMS]

    def _canonical_priority(self, value, bucket_priority: Optional[str]) -> str:
        key = "".join(ch for ch in self._coerce_field_to_str(value).lower() if ch.isalnum())
        if key in _PRIORITY_ALIASES:
            return _PRIORITY_ALIASES[key]
        return bucket_priority or PRIORITY_NO_CHANGE
