"""
Tests for environment configuration
"""

import pytest

from classes.app_config import AppConfig

ENV_VARS = (
    "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "AZURE_OPENAI_API_KEY", "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_DEPLOYMENT", "GOOGLE_CLOUD_PROJECT", "GOOGLE_CLOUD_REGION", "LLM_MODEL",
    "LLM_TIMEOUT", "LLM_RETRIES", "LLM_BACKOFF_SECONDS", "DESCRIPTION_CHAR_LIMIT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:

    def test_defaults(self):
        config = AppConfig.from_env(dotenv=False)
        assert config == AppConfig()
        assert config.description_char_limit == 400

    def test_values_read(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("LLM_MODEL", "gpt-4o-mini")
        monkeypatch.setenv("LLM_RETRIES", "5")
        monkeypatch.setenv("LLM_TIMEOUT", "30.5")
        config = AppConfig.from_env(dotenv=False)
        assert config.openai_api_key == "sk-test"
        assert config.llm_model == "gpt-4o-mini"
        assert config.llm_retries == 5
        assert config.llm_timeout == 30.5

    def test_blank_values_use_defaults(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "")
        monkeypatch.setenv("LLM_RETRIES", "  ")
        config = AppConfig.from_env(dotenv=False)
        assert config.openai_api_key is None
        assert config.llm_retries == 3

    @pytest.mark.parametrize("name, value", [
        ("LLM_RETRIES", "three"),
        ("LLM_RETRIES", "2.5"),
        ("LLM_TIMEOUT", "soon"),
        ("DESCRIPTION_CHAR_LIMIT", "400 chars"),
    ])
    def test_malformed_number_raises(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ValueError, match=name):
            AppConfig.from_env(dotenv=False)
