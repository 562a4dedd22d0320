"""
Pytest configuration and shared fixtures.
"""

import json
import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from classes.llm_client import BaseLlmClient  # noqa: E402
from classes.model_props import get_model_config  # noqa: E402


YAML_TML = """\
guid: 1a2b3c
model:
  name: Retail Sales
  description: Sales model
  model_tables:
  - name: ORDERS
    fqn: 9f8e7d
  columns:
  - name: order_dt
    column_id: ORDERS::ORDER_DT
    properties:
      column_type: ATTRIBUTE
  - name: cust_id  # customer key
    column_id: ORDERS::CUST_ID
    properties:
      column_type: ATTRIBUTE
      synonyms:
      - customer
  - name: "is_active"
    column_id: CUSTOMERS::IS_ACTIVE
  formulas:
  - name: total_revenue
    expr: "sum ( [ORDERS::AMOUNT] )"
  - name: avg_order_value
    expr: "[total_revenue] / count ( [ORDERS::ORDER_ID] )"
  properties:
    is_bypass_rls: false
"""

JSON_LIKE_TML = """\
{
  "model": {
    "name": "Retail Sales",
    "columns": [
      {"name": "order_dt", "column_id": "ORDERS::ORDER_DT"},
      {"name": "cust_id", "column_id": "ORDERS::CUST_ID"}
    ],
    "formulas": [
      {"name": "total_revenue", "expr": "sum ( amount )"}
    ]
  }
}
"""


class FakeLlmClient(BaseLlmClient):
    """Replays canned completions (or raises canned errors) without any network call."""

    provider = "openai"

    def __init__(self, responses: List, **kwargs):
        kwargs.setdefault("retries", 1)
        kwargs.setdefault("backoff_seconds", 0.0)
        super().__init__(get_model_config("openai", "standard"), **kwargs)
        self.responses = list(responses)
        self.calls = []

    def call_model(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt})
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        self._merge_usage(100, 50)
        return item


@pytest.fixture
def yaml_tml() -> str:
    return YAML_TML


@pytest.fixture
def json_like_tml() -> str:
    return JSON_LIKE_TML


@pytest.fixture
def scenario_tml() -> str:
    """Three columns, no formulas."""
    return "model:\n  columns:\n  - name: order_dt\n  - name: cust_id\n  - name: is_active\n"


@pytest.fixture
def scenario_response() -> str:
    payload = {
        "comparisonTable": [
            {
                "currentName": "order_dt",
                "recommendedName": "Order Date",
                "recommendedSynonyms": ["order date", "purchase date", "transaction date"],
                "priority": "Important",
            }
        ]
    }
    return "```json\n" + json.dumps(payload) + "\n```"


@pytest.fixture
def full_analysis() -> dict:
    """A complete, well-formed analysis result for the YAML fixture."""
    def row(name, priority="No Change Needed"):
        description = f"{name} description for Spotter."
        return {
            "currentName": name,
            "recommendedName": name,
            "currentDescription": "None",
            "recommendedDescription": description,
            "currentSynonyms": "None",
            "recommendedSynonyms": [f"{name} a", f"{name} b", f"{name} c"],
            "priority": priority,
            "descriptionCharCount": len(description),
        }

    return {
        "industry": "Retail",
        "businessFunction": "Sales",
        "modelPurpose": "Order analytics",
        "totalColumns": 5,
        "columnsNeedingAttention": 1,
        "modelDescription": {"current": "Sales model", "recommended": "Retail order analytics for the sales team."},
        "modelInstructions": "Prefer order_dt for time filters.",
        "columnRecommendations": {
            "critical": [
                {
                    "columnName": "cust_id",
                    "issue": "Abbreviated name",
                    "recommendations": {
                        "name": "Customer ID",
                        "description": "Unique identifier of the customer who placed the order.",
                        "synonyms": ["customer id", "customer number", "client id"],
                        "rationale": "Users ask about customers, not cust.",
                    },
                }
            ],
            "important": [],
            "niceToHave": [],
        },
        "quickWins": ["Rename cust_id to Customer ID"],
        "comparisonTable": [
            row("order_dt"),
            row("cust_id", "Critical"),
            row("is_active"),
            row("total_revenue"),
            row("avg_order_value"),
        ],
        "statistics": {
            "missingDescriptions": 5,
            "abbreviatedNames": 1,
            "needingSynonyms": 4,
            "descriptionsOver400Chars": 0,
            "synonymOverlapIssues": 0,
            "impactLevel": "High",
        },
        "industryContext": "Retail KPIs: AOV, revenue, repeat rate.",
    }


@pytest.fixture
def fake_llm_factory():
    return FakeLlmClient
