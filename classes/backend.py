# classes/backend.py

import json
import logging
import traceback
from typing import Callable, Optional

from classes.analyzer import TMLAnalyzer
from classes.app_config import AppConfig
from classes.base_utils import BaseUtils
from classes.model_props import MODE_STANDARD, list_providers
from classes.report_export import build_docx_report, render_markdown_report
from classes.response_normalizer import ResponseNormalizer
from classes.tml_parser import parse_tml

logger = logging.getLogger("spotmatik_backend")

AnalyzerFactory = Callable[[str, str], TMLAnalyzer]


class Backend(BaseUtils):
    """
    Request dispatcher shared by the HTTP server and the command line.
    Requests are {"type": ..., "payload": {...}}, responses {"status", "message", "data"}.
    """

    def __init__(self, config: Optional[AppConfig] = None, analyzer_factory: Optional[AnalyzerFactory] = None):
        self.config = config or AppConfig.from_env()
        self._analyzer_factory = analyzer_factory or (
            lambda provider, mode: TMLAnalyzer.from_provider(provider, mode, self.config)
        )

    def _process_request_data(self, request_data: dict) -> dict:
        """
        Core request handling logic.
        Takes a parsed JSON dict and returns the response_data dict.
        Handler errors propagate to the caller, which owns the mapping to its own error surface.
        """
        try:
            request_type = request_data.get("type")
            payload = request_data.get("payload") or {}

            try:
                preview = json.dumps(request_data, indent=2)
            except Exception:
                preview = str(request_data)
            logger.debug(f"process_request request {preview[:2000]}")

            response_data = {
                "status": "success",
                "message": "",
            }

            if request_type == "providers":
                response_data["data"] = list_providers()

            elif request_type == "parse_tml":
                response_data["data"] = self.handle_parse_tml(payload)

            elif request_type == "analyze":
                response_data["data"] = self.handle_analyze(payload)
                response_data["message"] = "Analysis complete."

            elif request_type == "report_markdown":
                response_data["data"] = self.handle_report_markdown(payload)

            elif request_type == "report_docx":
                response_data["data"] = self.handle_report_docx(payload)

            else:
                response_data["status"] = "error"
                response_data["message"] = f"Unknown request type: {request_type}"

            return response_data

        except Exception as e:
            logger.error(f"Error while processing request data: {e}\n{traceback.format_exc()}")
            raise

    # -----------------------
    # Handlers
    # -----------------------

    def handle_parse_tml(self, payload: dict) -> dict:
        tml_content = payload.get("tml_content") or ""
        return parse_tml(tml_content).to_dict()

    def handle_analyze(self, payload: dict) -> dict:
        tml_content = payload.get("tml_content") or ""
        if not tml_content.strip():
            raise ValueError("tml_content is required")
        provider = payload.get("provider") or "openai"
        mode = payload.get("mode") or MODE_STANDARD

        analyzer = self._analyzer_factory(provider, mode)
        return analyzer.analyze(tml_content, payload.get("business_questions"))

    def handle_report_markdown(self, payload: dict) -> str:
        return render_markdown_report(self.report_results(payload))

    def handle_report_docx(self, payload: dict) -> bytes:
        return build_docx_report(self.report_results(payload))

    def report_results(self, payload: dict) -> dict:
        """Results are re-normalized before rendering so hand-edited payloads still render."""
        results = payload.get("results")
        structure = parse_tml(payload["tml_content"]) if payload.get("tml_content") else None
        normalizer = ResponseNormalizer(description_char_limit=self.config.description_char_limit)
        return normalizer.validate_and_normalize(results, structure)
