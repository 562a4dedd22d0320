import asyncio
import logging
import random
import time
import traceback
from typing import Any, Callable, Dict, List, Optional, TypeVar

from anthropic import Anthropic
from openai import AzureOpenAI, OpenAI
from langchain_google_vertexai import ChatVertexAI
from langchain_core.messages import HumanMessage, SystemMessage

from classes.app_config import AppConfig
from classes.model_props import (
    ModelConfig,
    PROVIDER_AZURE_OPENAI,
    PROVIDER_CLAUDE,
    PROVIDER_GEMINI,
    PROVIDER_OPENAI,
    UnsupportedProviderError,
    get_model_config,
)

logger = logging.getLogger("spotmatik_backend")

T = TypeVar("T")


class MaxRetryErrorsException(Exception):
    pass


_MAX_BACKOFF_SECONDS = 60.0


def _is_timeout_error(e: Exception) -> bool:
    if isinstance(e, (asyncio.TimeoutError, TimeoutError)):
        return True
    msg = repr(e)
    return "TimeoutError" in msg or "timed out" in msg.lower()


def _is_rate_limit_error(e: Exception) -> bool:
    if getattr(e, "status_code", None) == 429:
        return True
    msg = str(e)
    return (
        "429" in msg
        and (
            "RESOURCE_EXHAUSTED" in msg
            or "Resource has been exhausted" in msg
            or "Too Many Requests" in msg
            or "rate limit" in msg.lower()
        )
    )


def call_with_retries_sync(
    fn: Callable[[], T],
    *,
    retries: int = 3,
    base_delay: float = 2.0,
    max_delay: float = _MAX_BACKOFF_SECONDS,
    log: Callable[[str], None] | None = None,
) -> T:
    """
    Run a sync LLM call with capped attempts and exponential, jittered backoff between them.
    429/timeouts back off twice as long. Backoff state lives in this call only.
    """
    attempts = max(1, int(retries))
    last_exception: Exception | None = None

    for attempt in range(attempts):
        start_time = time.time()
        try:
            return fn()
        except Exception as e:
            elapsed = time.time() - start_time
            last_exception = e

            throttled = _is_rate_limit_error(e) or _is_timeout_error(e)
            if attempt + 1 >= attempts:
                msg = f"Attempt {attempt+1}/{attempts} failed, giving up."
                delay = 0.0
            else:
                base = base_delay * (2 ** attempt) * (2 if throttled else 1)
                delay = min(random.uniform(base * 0.95, base * 1.35), max_delay)
                kind = "got 429/timeout" if throttled else "failed"
                msg = f"Attempt {attempt+1}/{attempts} {kind}, backing off ~{delay:.1f}s."

            if log:
                log(f"{msg} (elapsed={elapsed:.2f}s): {e}\n{traceback.format_exc()}")

            if delay > 0:
                time.sleep(delay)

    raise MaxRetryErrorsException(f"All {attempts} retry attempts failed.") from last_exception


class BaseLlmClient:
    """
    One provider, one model. Subclasses implement `call_model` as a single HTTP call without
    retries; `invoke` layers the retry/backoff policy on top of it.
    """

    provider: str = ""

    def __init__(
        self,
        model_config: ModelConfig,
        *,
        retries: int = 3,
        backoff_seconds: float = 2.0,
    ):
        self.model_config = model_config
        self.model_name = model_config.model
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self.last_usage: Optional[Dict[str, int]] = None

    def call_model(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        raise NotImplementedError

    def invoke(self, prompt: str, system_prompt: Optional[str] = None, *, retries: Optional[int] = None) -> str:
        """
        Synchronous call with retries + backoff. An empty completion counts as a failed attempt.
        """
        def _call() -> str:
            text = self.call_model(prompt, system_prompt)
            if not text or not text.strip():
                raise ValueError(f"{self.provider} returned an empty completion")
            return text

        return call_with_retries_sync(
            _call,
            retries=self.retries if retries is None else retries,
            base_delay=self.backoff_seconds,
            log=lambda msg: logger.warning(f"[LLM-RETRY] {self.provider}/{self.model_name} {msg}"),
        )

    def _merge_usage(self, prompt_tokens: Any, completion_tokens: Any, total_tokens: Any = None) -> None:
        inc = {
            "prompt_token_count": int(prompt_tokens or 0),
            "candidates_token_count": int(completion_tokens or 0),
        }
        inc["total_token_count"] = int(total_tokens or 0) or inc["prompt_token_count"] + inc["candidates_token_count"]
        inc["calls"] = 1

        if self.last_usage is None:
            self.last_usage = inc
            return
        for k, v in inc.items():
            self.last_usage[k] = (self.last_usage.get(k, 0) or 0) + (v or 0)

    def get_accrued_usage(self) -> Dict[str, int]:
        return dict(self.last_usage or {})


class OpenAILlmClient(BaseLlmClient):
    """OpenAI chat completions, JSON response format."""

    provider = PROVIDER_OPENAI

    def __init__(self, model_config: ModelConfig, *, api_key: str, timeout: float | None = None, **kwargs):
        super().__init__(model_config, **kwargs)
        client_kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self._client = OpenAI(**client_kwargs)

    def _messages(self, prompt: str, system_prompt: Optional[str]) -> List[Dict[str, str]]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _sampling_params(self) -> Dict[str, Any]:
        cfg = self.model_config
        params = {
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "top_p": cfg.top_p,
            "presence_penalty": cfg.presence_penalty,
            "frequency_penalty": cfg.frequency_penalty,
        }
        return {k: v for k, v in params.items() if v is not None}

    def _completion_text(self, resp: Any) -> str:
        usage = getattr(resp, "usage", None)
        if usage is not None:
            self._merge_usage(
                getattr(usage, "prompt_tokens", 0),
                getattr(usage, "completion_tokens", 0),
                getattr(usage, "total_tokens", 0),
            )
        choices = getattr(resp, "choices", None) or []
        if not choices:
            return ""
        return (choices[0].message.content or "").strip()

    def call_model(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        resp = self._client.chat.completions.create(
            model=self.model_name,
            messages=self._messages(prompt, system_prompt),
            response_format={"type": "json_object"},
            **self._sampling_params(),
        )
        return self._completion_text(resp)


class AzureOpenAILlmClient(OpenAILlmClient):
    """
    Azure OpenAI deployment. The deployment name goes where OpenAI expects the model.
    Reasoning deployments (o1/o3) accept no system role and no sampling parameters and use
    max_completion_tokens, so the system prompt is folded into the user message.
    """

    provider = PROVIDER_AZURE_OPENAI

    def __init__(
        self,
        model_config: ModelConfig,
        *,
        api_key: str,
        endpoint: str,
        deployment: str,
        timeout: float | None = None,
        **kwargs,
    ):
        BaseLlmClient.__init__(self, model_config, **kwargs)
        self.deployment = deployment
        client_kwargs: Dict[str, Any] = {
            "api_key": api_key,
            "azure_endpoint": endpoint,
            "api_version": model_config.api_version,
            "max_retries": 0,
        }
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self._client = AzureOpenAI(**client_kwargs)

    def call_model(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        if self.model_config.is_reasoning:
            content = f"{system_prompt}\n\n---\n\n{prompt}" if system_prompt else prompt
            resp = self._client.chat.completions.create(
                model=self.deployment,
                messages=[{"role": "user", "content": content}],
                max_completion_tokens=self.model_config.max_completion_tokens,
            )
        else:
            resp = self._client.chat.completions.create(
                model=self.deployment,
                messages=self._messages(prompt, system_prompt),
                **self._sampling_params(),
            )
        return self._completion_text(resp)


class ClaudeLlmClient(BaseLlmClient):
    provider = PROVIDER_CLAUDE

    def __init__(self, model_config: ModelConfig, *, api_key: str, timeout: float | None = None, **kwargs):
        super().__init__(model_config, **kwargs)
        client_kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self._client = Anthropic(**client_kwargs)

    def call_model(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.model_name,
            "max_tokens": self.model_config.max_tokens or 4096,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        if self.model_config.temperature is not None:
            kwargs["temperature"] = self.model_config.temperature

        resp = self._client.messages.create(**kwargs)

        usage = getattr(resp, "usage", None)
        if usage is not None:
            self._merge_usage(getattr(usage, "input_tokens", 0), getattr(usage, "output_tokens", 0))

        parts = [getattr(block, "text", "") for block in (resp.content or []) if getattr(block, "type", "") == "text"]
        return "".join(parts).strip()


class GeminiLlmClient(BaseLlmClient):
    """Gemini through Vertex AI (project/region credentials, no API key)."""

    provider = PROVIDER_GEMINI

    def __init__(
        self,
        model_config: ModelConfig,
        *,
        vertex_project: str,
        vertex_region: str,
        timeout: float | None = None,
        **kwargs,
    ):
        super().__init__(model_config, **kwargs)
        self._vertex = ChatVertexAI(
            project=vertex_project,
            location=vertex_region,
            model_name=model_config.model,
            temperature=model_config.temperature,
            top_p=model_config.top_p,
            max_output_tokens=model_config.max_tokens,
            response_mime_type=model_config.response_mime_type,
            timeout=timeout,
            max_retries=0,
        )

    def _merge_vertex_usage(self, resp: Any) -> None:
        # langchain's normalized usage first, raw Vertex usage_metadata otherwise
        usage = getattr(resp, "usage_metadata", None)
        if isinstance(usage, dict) and usage:
            self._merge_usage(usage.get("input_tokens"), usage.get("output_tokens"), usage.get("total_tokens"))
            return
        rm = getattr(resp, "response_metadata", None)
        raw = rm.get("usage_metadata") if isinstance(rm, dict) else None
        if isinstance(raw, dict) and raw:
            self._merge_usage(
                raw.get("prompt_token_count"),
                raw.get("candidates_token_count"),
                raw.get("total_token_count"),
            )

    def call_model(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        messages = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        resp = self._vertex.invoke(messages)
        self._merge_vertex_usage(resp)

        if isinstance(resp, str):
            return resp.strip()
        content = getattr(resp, "content", str(resp))
        if isinstance(content, list):
            content = "".join(c if isinstance(c, str) else str(c.get("text", "")) for c in content)
        return str(content).strip()


def create_llm_client(provider: str, mode: str = "standard", config: Optional[AppConfig] = None) -> BaseLlmClient:
    """
    Builds the client for (provider, mode). Fails fast on an unknown provider or on
    credentials missing for the chosen one.
    """
    config = config or AppConfig.from_env()
    model_config = get_model_config(provider, mode)
    if config.llm_model:
        model_config = model_config.with_model(config.llm_model)
    common = {
        "timeout": config.llm_timeout,
        "retries": config.llm_retries,
        "backoff_seconds": config.llm_backoff_seconds,
    }

    if provider == PROVIDER_OPENAI:
        if not config.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required for the openai provider")
        return OpenAILlmClient(model_config, api_key=config.openai_api_key, **common)

    if provider == PROVIDER_AZURE_OPENAI:
        if not config.azure_openai_api_key:
            raise ValueError("AZURE_OPENAI_API_KEY is required for the azure-openai provider")
        if not config.azure_openai_endpoint:
            raise ValueError("Azure OpenAI endpoint is required (e.g., https://your-resource.openai.azure.com)")
        if not config.azure_openai_deployment:
            raise ValueError("Azure OpenAI deployment name is required")
        return AzureOpenAILlmClient(
            model_config,
            api_key=config.azure_openai_api_key,
            endpoint=config.azure_openai_endpoint,
            deployment=config.azure_openai_deployment,
            **common,
        )

    if provider == PROVIDER_CLAUDE:
        if not config.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY is required for the claude provider")
        return ClaudeLlmClient(model_config, api_key=config.anthropic_api_key, **common)

    if provider == PROVIDER_GEMINI:
        if not config.vertex_project:
            raise ValueError("GOOGLE_CLOUD_PROJECT is required for the gemini provider")
        return GeminiLlmClient(
            model_config,
            vertex_project=config.vertex_project,
            vertex_region=config.vertex_region,
            **common,
        )

    raise UnsupportedProviderError(f"Unsupported provider: {provider}")
