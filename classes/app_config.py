# classes/app_config.py
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw.strip() else default
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw.strip() else default
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'")


@dataclass
class AppConfig:
    """
    Process configuration, read once from the environment (.env is honoured).
    Provider credentials are optional here: a client only fails when it is actually built
    for a provider whose credentials are missing.
    """
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    azure_openai_api_key: Optional[str] = None
    azure_openai_endpoint: Optional[str] = None
    azure_openai_deployment: Optional[str] = None
    vertex_project: Optional[str] = None
    vertex_region: str = "us-central1"
    llm_model: Optional[str] = None

    llm_timeout: float = 120.0
    llm_retries: int = 3
    llm_backoff_seconds: float = 2.0
    description_char_limit: int = 400

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "AppConfig":
        if dotenv:
            load_dotenv()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            azure_openai_api_key=os.getenv("AZURE_OPENAI_API_KEY") or None,
            azure_openai_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT") or None,
            azure_openai_deployment=os.getenv("AZURE_OPENAI_DEPLOYMENT") or None,
            vertex_project=os.getenv("GOOGLE_CLOUD_PROJECT") or None,
            vertex_region=os.getenv("GOOGLE_CLOUD_REGION", "us-central1"),
            llm_model=os.getenv("LLM_MODEL") or None,
            llm_timeout=_env_float("LLM_TIMEOUT", 120.0),
            llm_retries=_env_int("LLM_RETRIES", 3),
            llm_backoff_seconds=_env_float("LLM_BACKOFF_SECONDS", 2.0),
            description_char_limit=_env_int("DESCRIPTION_CHAR_LIMIT", 400),
        )
