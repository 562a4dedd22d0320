# classes/analyzer.py

import logging
from typing import Any, Dict, Optional

from classes.analysis_prompts import SYSTEM_PROMPT, build_analysis_prompt
from classes.app_config import AppConfig
from classes.base_utils import BaseUtils
from classes.json_parser import ResilientJsonParser, UnparseableResponseError
from classes.llm_client import BaseLlmClient, create_llm_client
from classes.response_normalizer import ResponseNormalizer
from classes.tml_parser import ParsedDocumentStructure, parse_tml

logger = logging.getLogger("spotmatik_backend")


class TMLAnalyzer(BaseUtils):
    """
    One analysis run: extract the TML structure, prompt the LLM, parse whatever comes back,
    then normalize it against the structure.

    Errors:
    - ValueError on empty TML input
    - MaxRetryErrorsException when the provider keeps failing
    - UnparseableResponseError when the completion holds no recoverable JSON
    - EmptyAnalysisResponseError from the normalizer
    """

    def __init__(
        self,
        llm: BaseLlmClient,
        *,
        parser: Optional[ResilientJsonParser] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.llm = llm
        self.parser = parser or ResilientJsonParser()
        self.normalizer = normalizer or ResponseNormalizer()
        self.system_prompt = system_prompt
        self.last_structure: Optional[ParsedDocumentStructure] = None
        self.last_raw_response: Optional[str] = None

    @classmethod
    def from_provider(cls, provider: str, mode: str = "standard", config: Optional[AppConfig] = None) -> "TMLAnalyzer":
        config = config or AppConfig.from_env()
        return cls(
            create_llm_client(provider, mode, config),
            normalizer=ResponseNormalizer(description_char_limit=config.description_char_limit),
        )

    def analyze(self, tml_content: str, business_questions: Optional[str] = None) -> Dict[str, Any]:
        if not isinstance(tml_content, str) or not tml_content.strip():
            raise ValueError("TML content is empty")

        structure = parse_tml(tml_content)
        self.last_structure = structure
        logger.info(
            f"Analyzing TML: {structure.total_columns} columns, {structure.total_formulas} formulas "
            f"with {getattr(self.llm, 'provider', '?')}/{getattr(self.llm, 'model_name', '?')}"
        )

        prompt = build_analysis_prompt(tml_content, business_questions, structure)
        raw = self.llm.invoke(prompt, self.system_prompt)
        self.last_raw_response = raw

        parsed = self.parser.parse(raw)
        if parsed is None:
            preview = (raw or "")[:300]
            raise UnparseableResponseError(f"Could not parse the AI response as JSON. Response starts with: {preview!r}")
        # prose with a stray bracket can be "repaired" into a list or scalar
        if not self._is_analysis_object(parsed):
            preview = (raw or "")[:300]
            raise UnparseableResponseError(
                f"AI response did not contain an analysis object (got {type(parsed).__name__}). "
                f"Response starts with: {preview!r}"
            )

        results = self.normalizer.validate_and_normalize(parsed, structure)
        self.color_print(
            f"Analysis complete: {len(results.get('comparisonTable', []))} comparison rows",
            color="green",
        )
        return results

    @staticmethod
    def _is_analysis_object(parsed: Any) -> bool:
        if isinstance(parsed, dict):
            return True
        return isinstance(parsed, list) and len(parsed) == 1 and isinstance(parsed[0], dict)
