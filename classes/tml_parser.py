# classes/tml_parser.py
"""
TML structure extraction.

Scans ThoughtSpot TML text line by line and pulls the declared entity names out of the
`columns` and `formulas` sections. TML shows up both as indentation-significant YAML and as
a JSON-like dialect with brace-delimited blocks, often mixed within one export, so the scan
is heuristic on purpose: indentation decides where a block-style section ends, a brace
counter decides where a brace-style section ends.

The result is the ground truth used to check that an LLM analysis covers every entity.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

logger = logging.getLogger("spotmatik_backend")


@dataclass(frozen=True)
class TMLSectionConfig:
    """Section keyword plus the keys that carry an entity name inside it."""
    keyword: str
    name_keys: Tuple[str, ...] = ("name",)


# `names:` shows up in some older column exports, formulas always use `name:`
COLUMNS_SECTION = TMLSectionConfig(keyword="columns", name_keys=("name", "names"))
FORMULAS_SECTION = TMLSectionConfig(keyword="formulas", name_keys=("name",))


@dataclass(frozen=True)
class ParsedDocumentStructure:
    columns: Tuple[str, ...] = field(default_factory=tuple)
    formulas: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_columns(self) -> int:
        return len(self.columns)

    @property
    def total_formulas(self) -> int:
        return len(self.formulas)

    @property
    def all_names(self) -> Tuple[str, ...]:
        # completeness checklist only, no uniqueness across the two lists
        return self.columns + self.formulas

    def to_dict(self) -> dict:
        return {
            "columns": list(self.columns),
            "formulas": list(self.formulas),
            "totalColumns": self.total_columns,
            "totalFormulas": self.total_formulas,
            "allNames": list(self.all_names),
        }


_FRESH_KEY_RE = re.compile(r"^[\"']?\w+[\"']?\s*:")
_TRAILING_JSON_PUNCT_RE = re.compile(r"[,}\]]+$")
_NEXT_INLINE_KEY_RE = re.compile(r",\s*[\"']?\w+[\"']?\s*:.*$")
_YAML_COMMENT_RE = re.compile(r"\s+#.*$")


def _keys_pattern(name_keys: Tuple[str, ...]) -> str:
    # longest first so `names` is never shadowed by `name`
    keys = sorted({k for k in name_keys if k}, key=len, reverse=True)
    return "|".join(re.escape(k) for k in keys)


def _section_entry_re(keyword: str) -> re.Pattern:
    return re.compile(rf"^[\"']?{re.escape(keyword)}[\"']?\s*:(?P<rest>.*)$")


def _name_value_re(name_keys: Tuple[str, ...]) -> re.Pattern:
    return re.compile(rf"(?<![\w-])[\"']?(?:{_keys_pattern(name_keys)})[\"']?\s*:\s*(?P<value>.+)$")


def _continuation_re(name_keys: Tuple[str, ...]) -> re.Pattern:
    return re.compile(rf"^(?:-\s*)?[\"']?(?:{_keys_pattern(name_keys)})[\"']?\s*:")


def _unquote(value: str) -> str:
    return re.sub(r"^['\"]|['\"]$", "", value.strip()).strip()


def _extract_name_value(value: str) -> List[str]:
    """
    Turns the text after `name:` into entity names. Precedence:
    1. inline array   name: [a, "b", 'c']
    2. quoted scalar  name: "Order Date"   (first quoted token wins)
    3. bare scalar    name: order_dt,      (trailing JSON punctuation stripped)
    List items (`- name: X`) reach here with the dash already behind the match.
    """
    value = value.strip()
    if not value:
        return []

    if value.startswith("["):
        m = re.match(r"\[(.*)\]", value)
        if not m:
            return []
        return [n for n in (_unquote(p) for p in m.group(1).split(",")) if n]

    m = re.match(r"^([\"'])(.*?)\1", value)
    if m:
        name = m.group(2).strip()
        return [name] if name else []

    if value.startswith("{"):
        return []

    bare = _YAML_COMMENT_RE.sub("", value)
    bare = _NEXT_INLINE_KEY_RE.sub("", bare)
    bare = _TRAILING_JSON_PUNCT_RE.sub("", bare.strip()).strip()
    bare = _unquote(bare)
    return [bare] if bare else []


def _names_in_line(line: str, name_re: re.Pattern) -> List[str]:
    m = name_re.search(line)
    if not m:
        return []
    return _extract_name_value(m.group("value"))


def _names_in_inline_block(text: str, name_keys: Tuple[str, ...]) -> List[str]:
    """Every name of a section that opens and closes on one line, e.g. `columns: {name: a}`."""
    pattern = re.compile(
        rf"(?<![\w-])[\"']?(?:{_keys_pattern(name_keys)})[\"']?\s*:\s*(\"[^\"]*\"|'[^']*'|\[[^\]]*\]|[^,}}\]]+)"
    )
    names: List[str] = []
    for m in pattern.finditer(text):
        names.extend(_extract_name_value(m.group(1)))
    return names


def _scan_section(tml_content: str, section: TMLSectionConfig) -> List[str]:
    entry_re = _section_entry_re(section.keyword)
    name_re = _name_value_re(section.name_keys)
    continuation_re = _continuation_re(section.name_keys)

    names: List[str] = []
    in_section = False
    section_indent = 0
    brace_depth = 0
    brace_tracking = False

    for line in tml_content.splitlines():
        trimmed = line.strip()
        line_indent = len(line) - len(line.lstrip())

        entry = entry_re.match(trimmed)
        if entry:
            in_section = True
            section_indent = line_indent
            brace_depth = 0
            brace_tracking = False

            rest = entry.group("rest").strip()
            if rest.startswith("{"):
                brace_tracking = True
                brace_depth = rest.count("{") - rest.count("}")
                if brace_depth <= 0:
                    # opened and closed on the same line
                    names.extend(_names_in_inline_block(rest, section.name_keys))
                    in_section = False
            elif rest.startswith("[") and rest.rstrip(",").endswith("]"):
                names.extend(_names_in_inline_block(rest, section.name_keys))
            continue

        if not in_section:
            continue

        brace_depth += line.count("{") - line.count("}")

        if brace_tracking:
            if brace_depth <= 0:
                names.extend(_names_in_line(line, name_re))
                in_section = False
                continue
        elif brace_depth < 0:
            # closer of an enclosing JSON-like block
            in_section = False
            continue

        if brace_depth == 0 and trimmed and line_indent <= section_indent:
            if (
                not trimmed.startswith("-")
                and not continuation_re.match(trimmed)
                and _FRESH_KEY_RE.match(trimmed)
                and section.keyword not in trimmed
            ):
                in_section = False
                continue

        names.extend(_names_in_line(line, name_re))

    return names


def parse_tml_section(tml_content: str, section: TMLSectionConfig) -> List[str]:
    """
    Ordered, duplicate-free names declared under `section.keyword`.
    Never raises: bad input or an internal failure yields [].
    """
    if not tml_content or not isinstance(tml_content, str):
        return []

    try:
        names = _scan_section(tml_content, section)
    except Exception as e:
        logger.error(f"TML Parser: failed to scan '{section.keyword}' section: {e}")
        return []

    out: List[str] = []
    seen = set()
    for n in names:
        if n and n not in seen:
            seen.add(n)
            out.append(n)

    logger.info(f"TML Parser: Found {len(out)} {section.keyword} in {section.keyword} section")
    return out


def parse_tml_columns(tml_content: str, section: Optional[TMLSectionConfig] = None) -> List[str]:
    return parse_tml_section(tml_content, section or COLUMNS_SECTION)


def parse_tml_formulas(tml_content: str, section: Optional[TMLSectionConfig] = None) -> List[str]:
    return parse_tml_section(tml_content, section or FORMULAS_SECTION)


def parse_tml(
    tml_content: str,
    columns_section: Optional[TMLSectionConfig] = None,
    formulas_section: Optional[TMLSectionConfig] = None,
) -> ParsedDocumentStructure:
    """Columns and formulas of a TML document, each section extracted independently."""
    columns = parse_tml_columns(tml_content, columns_section)
    formulas = parse_tml_formulas(tml_content, formulas_section)
    return ParsedDocumentStructure(columns=tuple(columns), formulas=tuple(formulas))
