# aix_core/providers.py
from __future__ import annotations

import os
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from openai import OpenAI

from .config import DEFAULT_MODEL, DEFAULT_PROVIDER


class ProviderError(RuntimeError):
    """Unknown provider or missing credentials."""


@dataclass(frozen=True)
class ProviderSpec:
    key: str
    label: str
    key_env: str
    base_url: str
    json_mode: bool = False  # native response_format=json_object support


# All five speak the OpenAI chat-completions dialect.
PROVIDERS: Mapping[str, ProviderSpec] = MappingProxyType({
    "openrouter": ProviderSpec("openrouter", "OpenRouter", "OPENROUTER_API_KEY", "https://openrouter.ai/api/v1"),
    "deepseek": ProviderSpec("deepseek", "DeepSeek", "DEEPSEEK_API_KEY", "https://api.deepseek.com/v1"),
    "groq": ProviderSpec("groq", "Groq", "GROQ_API_KEY", "https://api.groq.com/openai/v1"),
    "mistral": ProviderSpec("mistral", "Mistral", "MISTRAL_API_KEY", "https://api.mistral.ai/v1"),
    "moonshot": ProviderSpec("moonshot", "MoonShot AI", "MOONSHOT_API_KEY", "https://api.moonshot.cn/v1", json_mode=True),
})

# provider -> [(model, description)] for `aix models`
KNOWN_MODELS: Dict[str, List[Tuple[str, str]]] = {
    "moonshot": [
        ("kimi-k2-0711-preview", "Kimi K2"),
        ("kimi-v1-8k", "Kimi V1"),
    ],
    "deepseek": [
        ("deepseek-chat", "DeepSeek V3"),
        ("deepseek-reasoner", "DeepSeek R1"),
    ],
    "groq": [
        ("llama-3.3-70b-versatile", "Llama 3.3 70B"),
        ("gemma2-9b-it", "Gemma 2 9B"),
    ],
    "mistral": [
        ("mistral-large-latest", "Mistral Large"),
        ("pixtral-large-latest", "Pixtral Large"),
    ],
    "openrouter": [
        ("anthropic/claude-sonnet-4", "Claude Sonnet 4"),
        ("meta-llama/llama-3.1-405b-instruct", "Llama 3.1 405B"),
        ("google/gemini-pro", "Google Gemini Pro"),
        ("openai/gpt-4o", "GPT-4 Optimized"),
    ],
}

Message = Dict[str, str]


def parse_model_string(
    model_string: Optional[str],
    default_provider: str = DEFAULT_PROVIDER,
    default_model: str = DEFAULT_MODEL,
) -> Tuple[str, str]:
    """
    'provider:model' -> (provider, model); a bare 'model' uses the default provider.
    OpenRouter ids contain '/', never ':', so a single split is enough.
    """
    s = (model_string or "").strip()
    if not s:
        return default_provider, default_model
    if ":" in s:
        provider, _, model = s.partition(":")
        return (provider.strip() or default_provider), (model.strip() or default_model)
    return default_provider, s


def provider_label(provider: str, providers: Mapping[str, ProviderSpec] = PROVIDERS) -> str:
    spec = providers.get(provider)
    return spec.label if spec else provider


def missing_credentials(
    env: Optional[Mapping[str, str]] = None,
    providers: Mapping[str, ProviderSpec] = PROVIDERS,
) -> bool:
    """True when not a single provider key is configured."""
    env = os.environ if env is None else env
    return not any((env.get(spec.key_env) or "").strip() for spec in providers.values())


class ChatBackend:
    """One provider + model pair, resolved once per invocation."""

    def __init__(self, spec: ProviderSpec, model: str, client) -> None:
        self.spec = spec
        self.model = model
        self.client = client

    @property
    def name(self) -> str:
        return f"{self.spec.key}:{self.model}"

    @property
    def supports_json_mode(self) -> bool:
        return self.spec.json_mode

    def complete(self, messages: List[Message], temperature: float, json_mode: bool = False) -> str:
        kwargs = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        resp = self.client.chat.completions.create(**kwargs)
        return (resp.choices[0].message.content or "").strip()

    def stream(self, messages: List[Message], temperature: float) -> Iterator[str]:
        chunks = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            stream=True,
        )
        for chunk in chunks:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta


def _clean_key(raw: str) -> str:
    key = (raw or "").strip().strip('"').strip("'")
    if "\n" in key:
        key = key.splitlines()[0].strip()
    return key


def resolve_backend(
    model_string: Optional[str],
    *,
    default_provider: str = DEFAULT_PROVIDER,
    default_model: str = DEFAULT_MODEL,
    env: Optional[Mapping[str, str]] = None,
    providers: Mapping[str, ProviderSpec] = PROVIDERS,
    client_factory: Callable[..., object] = OpenAI,
) -> ChatBackend:
    env = os.environ if env is None else env
    provider, model = parse_model_string(model_string, default_provider, default_model)
    spec = providers.get(provider)
    if spec is None:
        raise ProviderError(
            f"Unknown provider: {provider}. Available: {', '.join(providers)}"
        )
    api_key = _clean_key(env.get(spec.key_env) or "")
    if not api_key:
        raise ProviderError(f"{spec.key_env} environment variable is required for {spec.label}")
    client = client_factory(api_key=api_key, base_url=spec.base_url)
    return ChatBackend(spec, model, client)
