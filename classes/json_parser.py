# classes/json_parser.py

import json
import logging
import re
from typing import Any, Callable, List, Optional

import commentjson
import yaml
from json_repair import repair_json

from classes.base_utils import BaseUtils

logger = logging.getLogger("spotmatik_backend")


class UnparseableResponseError(Exception):
    pass


class ResilientJsonParser(BaseUtils):
    """
    Turns "almost JSON" coming back from an LLM into a Python value.

    Tolerates code fences, prose before/after the payload, trailing commas, truncated tails and
    unbalanced brackets. Strategies run from least to most aggressive and the first one that
    parses wins. parse() never raises: when everything fails it logs and returns None, the caller
    decides whether to retry the upstream call.

    Schema agnostic: only syntactic validity is recovered here.
    """

    # greedy "looks complete" shapes, tried in this order
    COMPLETION_PATTERNS = [
        re.compile(r"\{[\s\S]*\}\s*\]\s*\}"),  # object whose tail closes an array and the root
        re.compile(r"\{[\s\S]*\}\s*\}"),        # nested objects
        re.compile(r"\{[\s\S]*\]"),             # object with a trailing array
    ]
    PERMISSIVE_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

    def parse(self, text) -> Optional[Any]:
        if not isinstance(text, str) or not text.strip():
            logger.error("parse_json_safely: Invalid input")
            return None

        last_error: Optional[Exception] = None

        def attempt(candidate: str, label: str, loader: Callable[[str], Any] = json.loads):
            nonlocal last_error
            try:
                return True, loader(candidate)
            except Exception as e:
                last_error = e
                logger.debug(f"parse_json_safely: {label} failed: {e}")
                return False, None

        # 1. as-is, then without code fences
        raw = text.strip()
        ok, data = attempt(raw, "direct parse")
        if ok:
            return data
        clean = self.clean_triple_backticks(raw).strip()
        if clean != raw:
            ok, data = attempt(clean, "parse without code fences")
            if ok:
                return data
        logger.warning(f"Initial JSON parse failed, attempting repairs... {last_error}")

        # 2. drop whatever precedes the first { or [
        starts = [i for i in (clean.find("{"), clean.find("[")) if i >= 0]
        if starts and min(starts) > 0:
            clean = clean[min(starts):]
            ok, data = attempt(clean, "parse after trimming prefix")
            if ok:
                return data

        # 3. drop whatever follows the last } or ]
        json_end = max(clean.rfind("}"), clean.rfind("]"))
        if 0 <= json_end < len(clean) - 1:
            ok, data = attempt(clean[:json_end + 1], "parse after trimming suffix")
            if ok:
                return data

        # 4. punctuation repairs + bracket balancing
        for candidate in self._punctuation_repairs(clean):
            ok, data = attempt(candidate, "parse after balancing")
            if ok:
                logger.info("Successfully repaired truncated JSON")
                return data

        # 5. longest greedy "complete looking" substring, per pattern
        for pattern in self.COMPLETION_PATTERNS:
            matches = pattern.findall(clean)
            if not matches:
                continue
            longest = max(matches, key=len)
            ok, data = attempt(longest, f"pattern {pattern.pattern}")
            if ok:
                logger.info("Successfully extracted valid JSON using pattern matching")
                return data

        # 6. most permissive object extraction
        m = self.PERMISSIVE_OBJECT.search(clean)
        if m:
            ok, data = attempt(m.group(0), "regex extraction")
            if ok:
                return data

        # 7. tolerant loaders; only when there is something bracket shaped to work on
        if starts:
            data = self._load_with_tolerant_loaders(clean, attempt)
            if data is not None:
                return data

        logger.error(f"All JSON repair attempts failed: {last_error}")
        return None

    # -----------------------
    # Repairs
    # -----------------------

    def _punctuation_repairs(self, text: str) -> List[str]:
        """
        Candidates for step 4, most content first:
        - trailing commas removed, closers appended
        - same, after dropping an incomplete last entry
        """
        fixed = self._remove_trailing_commas(text)
        candidates = [fixed + self._missing_closers(fixed)]

        trimmed = self._remove_incomplete_tail(fixed)
        if trimmed != fixed:
            trimmed = self._remove_trailing_commas(trimmed)
            candidates.append(trimmed + self._missing_closers(trimmed))

        out = []
        for c in candidates:
            if c not in out:
                out.append(c)
        return out

    def _remove_trailing_commas(self, text: str) -> str:
        return re.sub(r",(\s*[\]}])", r"\1", text)

    def _remove_incomplete_tail(self, text: str) -> str:
        # a cut-off response ends with ", <partial entry>" and no closer after it
        if re.search(r",\s*[^,{\[}\]]*$", text):
            cutoff = max(text.rfind("}"), text.rfind("]"))
            if cutoff > 0:
                return text[:cutoff + 1]
        return text

    def _missing_closers(self, text: str) -> str:
        """
        Closers needed to balance every { and [ left open, innermost first.
        Brackets inside string literals are ignored; an unterminated string is closed first.
        """
        stack: List[str] = []
        in_string = False
        escaped = False
        for ch in text:
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                stack.append("}")
            elif ch == "[":
                stack.append("]")
            elif ch in "}]" and stack and stack[-1] == ch:
                stack.pop()

        closers = "".join(reversed(stack))
        if in_string:
            closers = '"' + closers
        return closers

    # -----------------------
    # Tolerant loaders
    # -----------------------

    def _load_with_tolerant_loaders(self, text: str, attempt) -> Optional[Any]:
        def structured(loader):
            def _load(s):
                data = loader(s)
                if not isinstance(data, (dict, list)):
                    raise ValueError(f"expected an object or array, got {type(data).__name__}")
                return data
            return _load

        ok, data = attempt(text, "commentjson", structured(commentjson.loads))
        if ok:
            return data

        ok, data = attempt(text, "json_repair", structured(lambda s: json.loads(repair_json(s))))
        if ok and data:
            self.color_print("parse_json_safely: recovered JSON with json_repair", color="yellow")
            return data

        ok, data = attempt(text, "yaml", structured(lambda s: yaml.safe_load(self._sanitize_json_string(s))))
        if ok and data:
            self.color_print("parse_json_safely: recovered JSON through YAML", color="yellow")
            return data
        return None

    def _sanitize_json_string(self, input_str: str) -> str:
        """
        Prepares JSON-like text for a YAML load.
        - Removes // and /* */ comments.
        - Escapes stray backslashes, literal newlines and unescaped quotes inside strings.
        """
        def process_string_segment(match):
            content = match.group(1)
            # Escape unescaped backslashes not part of escape sequences
            content = re.sub(r'(?<!\\)\\(?![bfnrtu"\\/])', r'\\\\', content)
            # Replace literal newlines within the string content
            content = re.sub(r'(?<!\\)\n', r'\\n', content)
            return f'"{content}"'

        no_comments = re.sub(r'(?<!:)//.*?$|/\*.*?\*/', '', input_str, flags=re.MULTILINE | re.DOTALL)
        return re.sub(r'(?<!\\)"((?:[^"\\]|\\.)*?)"', process_string_segment, no_comments, flags=re.DOTALL)


def parse_json_safely(text) -> Optional[Any]:
    """Parsed value of an LLM response, or None when no strategy recovers it."""
    return ResilientJsonParser().parse(text)
