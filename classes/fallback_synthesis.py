# classes/fallback_synthesis.py
"""
Deterministic stand-ins for descriptions, synonyms and rationales the LLM left out.

These are a last resort, never a substitute for a real upstream value: callers log a warning
every time one of them is used.
"""

import re
from typing import List, Optional, Tuple

MIN_SYNONYMS = 3
MAX_SYNONYMS = 5

STATUS_HINT = "indicates a status or true/false condition. Use it to filter records by their state."

# (cue, hint) evaluated top to bottom, first match wins.
# Cues run against the lower-cased raw name with separators folded to "_".
# date/time glued to another word only count at either end of the name ("orderdate", "timeofday").
CATEGORY_HINTS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"^(is|has|can|should)_"), STATUS_HINT),
    (
        re.compile(r"(^|_)(dt|date|time|timestamp|ts|year|yr|month|mon|day|week|wk|quarter|qtr|period|created|updated)(_|$)|date$|time$|^date|^time"),
        "represents a date or time value. Use it for time-based filtering, grouping and trend analysis.",
    ),
    (
        re.compile(r"(^|_)(id|key|pk|fk|code|uuid|guid|sku)(_|$)"),
        "serves as an identifier or key. Use it for lookups, joins and counting distinct records.",
    ),
    (
        re.compile(r"(^|_)(amt|amount|price|cost|revenue|rev|sales|fee|fees|balance|spend|margin|profit|usd|eur|payment|income|salary|budget|arr|mrr|acv)(_|$)"),
        "represents a monetary value. Use it for financial analysis, aggregation and reporting.",
    ),
    (
        re.compile(r"(^|_)(count|cnt|qty|quantity|num|number|total|units|volume|nbr)(_|$)"),
        "represents a numeric count or quantity. Use it for aggregation and volume analysis.",
    ),
    (
        re.compile(r"(^|_)(flag|flg|status|state|active|enabled|disabled|valid|deleted|bool)(_|$)"),
        STATUS_HINT,
    ),
    (
        re.compile(r"(^|_)(pct|percent|percentage|rate|ratio|share|perc)(_|$)|%"),
        "represents a percentage or ratio. Use it to compare proportions and performance rates.",
    ),
]
GENERIC_HINT = "is a field in this data model."


def split_name_words(name: str) -> List[str]:
    """`orderDate`, `ORDER_DATE`, `order-date` and `Order Date` all become ["order", "date"]."""
    if not name:
        return []
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", str(name))
    s = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", s)
    return [w.lower() for w in re.split(r"[\s_\-./:]+", s) if w]


def readable_name(name: str) -> str:
    return " ".join(split_name_words(name))


def category_hint(name: str) -> str:
    cue_target = "_".join(split_name_words(name)) or str(name or "").lower()
    for cue, hint in CATEGORY_HINTS:
        if cue.search(cue_target):
            return hint
    return GENERIC_HINT


def generate_fallback_description(name: str) -> str:
    readable = readable_name(name) or str(name or "").strip() or "This column"
    return f"{readable[0].upper()}{readable[1:]} {category_hint(name)}"


def generate_fallback_synonyms(name: str, existing: Optional[List[str]] = None) -> List[str]:
    """
    3 to 5 synonyms from the name alone: the readable full name, its word tokens, then the
    word-suffix combinations. Placeholders only pad whatever is still missing.
    `existing` entries keep their place at the front.
    """
    words = split_name_words(name)
    full = " ".join(words) or str(name or "").strip()

    candidates: List[str] = list(existing or [])
    candidates.append(full)
    if len(words) > 1:
        candidates.extend(w for w in words if len(w) > 1)
        candidates.extend(" ".join(words[i:]) for i in range(1, len(words) - 1))

    out: List[str] = []
    seen = set()
    for c in candidates:
        c = (c or "").strip()
        if c and c.lower() not in seen:
            seen.add(c.lower())
            out.append(c)

    for suffix in ("field", "value", "attribute", "data"):
        if len(out) >= MIN_SYNONYMS:
            break
        placeholder = f"{full} {suffix}".strip()
        if placeholder.lower() not in seen:
            seen.add(placeholder.lower())
            out.append(placeholder)

    return out[:MAX_SYNONYMS]


def generate_fallback_rationale(name: str, issue: Optional[str] = None) -> str:
    rationale = (
        f"A clear name, description and synonyms for '{name}' help Spotter map natural "
        f"language questions to this column."
    )
    issue = (issue or "").strip()
    if issue:
        rationale += f" Addresses: {issue}"
    return rationale
