# classes/model_props.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional


class UnsupportedProviderError(ValueError):
    pass


#! PROVIDERS / MODES

PROVIDER_OPENAI = "openai"
PROVIDER_AZURE_OPENAI = "azure-openai"
PROVIDER_CLAUDE = "claude"
PROVIDER_GEMINI = "gemini"

AI_PROVIDERS: Dict[str, str] = {
    "OPENAI": PROVIDER_OPENAI,
    "AZURE_OPENAI": PROVIDER_AZURE_OPENAI,
    "CLAUDE": PROVIDER_CLAUDE,
    "GEMINI": PROVIDER_GEMINI,
}

MODE_STANDARD = "standard"
MODE_ADVANCED = "advanced"
MODE_REASONING = "reasoning"
MODE_ADVANCED_REASONING = "advancedReasoning"

MODEL_MODES: Dict[str, str] = {
    "STANDARD": MODE_STANDARD,
    "ADVANCED": MODE_ADVANCED,
    "REASONING": MODE_REASONING,
    "ADVANCED_REASONING": MODE_ADVANCED_REASONING,
}

#! MODEL TABLE

AI_MODELS: Dict[str, Dict[str, Any]] = {
    PROVIDER_OPENAI: {
        "models": {
            MODE_STANDARD: "gpt-4o-mini",
            MODE_ADVANCED: "gpt-4o",
        },
        "defaults": {
            "temperature": 0.25,
            "top_p": 0.9,
            "presence_penalty": 0.0,
            "frequency_penalty": 0.0,
            "max_tokens": 16384,
        },
    },
    PROVIDER_AZURE_OPENAI: {
        "models": {
            MODE_STANDARD: "gpt-4o-mini",
            MODE_ADVANCED: "gpt-4o",
            MODE_REASONING: "o1-mini",
            MODE_ADVANCED_REASONING: "o3-mini",
        },
        "defaults": {
            "temperature": 0.25,
            "top_p": 0.9,
            "presence_penalty": 0.0,
            "frequency_penalty": 0.0,
            "max_tokens": 16384,
            "api_version": "2024-08-01-preview",
        },
        # o1/o3: no temperature, top_p or system role
        "reasoning_defaults": {
            "max_completion_tokens": 16384,
            "api_version": "2024-12-01-preview",
        },
    },
    PROVIDER_CLAUDE: {
        "models": {
            MODE_STANDARD: "claude-3-5-sonnet-20241022",
            MODE_ADVANCED: "claude-sonnet-4-20250514",
        },
        "defaults": {
            "temperature": 0.2,
            "top_p": 0.9,
            "max_tokens": 16384,
        },
    },
    PROVIDER_GEMINI: {
        "models": {
            MODE_STANDARD: "gemini-1.5-flash",
            MODE_ADVANCED: "gemini-1.5-pro",
        },
        "defaults": {
            "temperature": 0.35,
            "top_p": 0.9,
            "max_tokens": 16384,
            "response_mime_type": "application/json",
        },
    },
}

PROVIDER_INFO: Dict[str, Dict[str, Any]] = {
    PROVIDER_CLAUDE: {
        "name": "Claude (Anthropic)",
        "api_key_prefix": "sk-ant-",
        "console_url": "https://console.anthropic.com/",
        "description": "Anthropic Claude - Advanced reasoning and analysis",
    },
    PROVIDER_OPENAI: {
        "name": "ChatGPT (OpenAI)",
        "api_key_prefix": "sk-",
        "console_url": "https://platform.openai.com/api-keys",
        "description": "OpenAI ChatGPT - Versatile and powerful",
    },
    PROVIDER_AZURE_OPENAI: {
        "name": "Azure OpenAI",
        "api_key_prefix": "",
        "console_url": "https://portal.azure.com/",
        "description": "Azure OpenAI - Enterprise-grade with reasoning models",
        "requires_endpoint": True,
        "requires_deployment": True,
    },
    PROVIDER_GEMINI: {
        "name": "Gemini (Google Vertex AI)",
        "api_key_prefix": "",
        "console_url": "https://console.cloud.google.com/vertex-ai",
        "description": "Google Gemini - Fast and efficient",
    },
}


@dataclass(frozen=True)
class ModelConfig:
    """Everything a provider client needs to know about one (provider, mode) pair."""
    provider: str
    mode: str
    model: str
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    max_tokens: Optional[int] = None
    max_completion_tokens: Optional[int] = None
    api_version: Optional[str] = None
    response_mime_type: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_reasoning(self) -> bool:
        return self.provider == PROVIDER_AZURE_OPENAI and is_reasoning_mode(self.mode)

    def with_model(self, model: str) -> "ModelConfig":
        return replace(self, model=model)


#! LOOKUPS

def is_reasoning_mode(mode: str) -> bool:
    return mode in (MODE_REASONING, MODE_ADVANCED_REASONING)


def supports_reasoning_models(provider: str) -> bool:
    return provider == PROVIDER_AZURE_OPENAI


def get_model_config(provider: str, mode: str = MODE_STANDARD) -> ModelConfig:
    """
    Resolves (provider, mode) to a ModelConfig.
    - Unknown provider fails fast with UnsupportedProviderError.
    - A mode the provider has no model for falls back to its standard model.
    - Azure reasoning modes use the reasoning defaults instead of the sampling ones.
    """
    base = AI_MODELS.get(provider)
    if not base:
        raise UnsupportedProviderError(f"Unsupported provider: {provider}")

    models = base["models"]
    resolved_mode = mode if mode in models else MODE_STANDARD
    model = models[resolved_mode]

    if provider == PROVIDER_AZURE_OPENAI and is_reasoning_mode(resolved_mode):
        params = dict(base["reasoning_defaults"])
    else:
        params = dict(base["defaults"])

    known = set(ModelConfig.__dataclass_fields__) - {"provider", "mode", "model", "extra"}
    extra = {k: v for k, v in params.items() if k not in known}
    params = {k: v for k, v in params.items() if k in known}

    return ModelConfig(provider=provider, mode=resolved_mode, model=model, extra=extra, **params)


def list_providers() -> list:
    """Display data for every supported provider, with its models per mode."""
    out = []
    for provider, info in PROVIDER_INFO.items():
        out.append({
            "id": provider,
            **info,
            "models": dict(AI_MODELS[provider]["models"]),
            "supports_reasoning_models": supports_reasoning_models(provider),
        })
    return out
