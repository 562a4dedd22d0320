# classes/base_utils.py


import json
import logging
import re


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s\n%(message)s\n"
)

logger = logging.getLogger("spotmatik_backend")


class BaseUtils():

    # -----------------------
    # General Utils
    # -----------------------

    def color_print(self, text, color=None, level=logging.INFO):
        COLOR_CODES = {
            'black': '30', 'red': '31', 'green': '32', 'yellow': '33', 'blue': '34', 'magenta': '35',
            'cyan': '36', 'white': '37', 'bright_black': '90', 'bright_red': '91', 'bright_green': '92',
            'bright_yellow': '93', 'bright_blue': '94', 'bright_magenta': '95', 'bright_cyan': '96', 'bright_white': '97'
        }
        if color and color.lower() in COLOR_CODES:
            color_code = COLOR_CODES[color.lower()]
            start = f"\033[{color_code}m"
            end = "\033[0m"
            text = f"{start}{text}{end}"
        logger.log(level, str(text))
        return False

    def clean_triple_backticks(self, code) -> str:
        pattern = r'```[a-zA-Z]*\n?|```\n?'
        return re.sub(pattern, '', code)

    def _coerce_field_to_str(self, value) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        try:
            return json.dumps(value, indent=2)
        except TypeError:
            return str(value).strip()

    def _coerce_field_to_list(self, value) -> list[str]:
        """
        Accepts a list, a comma separated string or a single scalar and returns a list of
        non-empty stripped strings. The "None" sentinel and empty values yield [].
        """
        if value is None:
            return []
        if isinstance(value, str):
            if value.strip().lower() in ("", "none", "n/a", "null"):
                return []
            value = value.split(",")
        elif not isinstance(value, (list, tuple)):
            value = [value]

        out: list[str] = []
        for v in value:
            s = self._coerce_field_to_str(v)
            if s:
                out.append(s)
        return out

    def unsafe_string_format(self, dest_string, print_unused_keys_report=True, **kwargs):
        """
        Formats a destination string by replacing placeholders with corresponding values from kwargs.
        Placeholders whose key is not in kwargs are left untouched.

        it works differently from the standard "format" method as instead of looking for all the potential keys, looks only for the keys as passed in kwargs
        (prompts carry literal JSON braces that str.format would choke on)
        """
        # List to track keys that were not found
        missing_keys = []
        # Regex pattern to match placeholders like {key}
        def replacer(match):
            key = match.group(1)
            if key in kwargs:
                return str(kwargs[key])
            else:
                missing_keys.append(key)
                return match.group(0)  # Leave the placeholder unchanged

        pattern = re.compile(r'\{(\w+)\}')
        result = pattern.sub(replacer, dest_string)
        if missing_keys and print_unused_keys_report:
            logger.debug(f"Missing keys within string-to-format in unsafe_string_format: {', '.join(missing_keys)}")
        return result

    def _dedupe_keep_order(self, values, case_insensitive=False) -> list:
        seen = set()
        out = []
        for v in values:
            key = v.lower() if case_insensitive and isinstance(v, str) else v
            if key in seen:
                continue
            seen.add(key)
            out.append(v)
        return out
