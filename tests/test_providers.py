from types import SimpleNamespace

import pytest

from aix_core.providers import (
    PROVIDERS,
    ChatBackend,
    ProviderError,
    missing_credentials,
    parse_model_string,
    provider_label,
    resolve_backend,
)


class FakeCompletions:
    def __init__(self, reply="  hello  ", chunks=()):
        self.reply = reply
        self.chunks = chunks
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if kwargs.get("stream"):
            return iter(self.chunks)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.reply))])


class FakeClient:
    def __init__(self, api_key, base_url, completions=None):
        self.api_key = api_key
        self.base_url = base_url
        self.chat = SimpleNamespace(completions=completions or FakeCompletions())


def _chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


@pytest.mark.parametrize(
    "value, expected",
    [
        ("groq:llama-3.3-70b-versatile", ("groq", "llama-3.3-70b-versatile")),
        ("openrouter:anthropic/claude-sonnet-4", ("openrouter", "anthropic/claude-sonnet-4")),
        ("deepseek-chat", ("moonshot", "deepseek-chat")),
        ("", ("moonshot", "kimi-k2-0711-preview")),
        (None, ("moonshot", "kimi-k2-0711-preview")),
        ("mistral:", ("mistral", "kimi-k2-0711-preview")),
    ],
)
def test_parse_model_string(value, expected):
    assert parse_model_string(value) == expected


def test_resolve_backend_builds_client_with_provider_url():
    made = []

    def factory(**kwargs):
        client = FakeClient(**kwargs)
        made.append(client)
        return client

    backend = resolve_backend(
        "deepseek:deepseek-chat",
        env={"DEEPSEEK_API_KEY": ' "sk-test" \n'},
        client_factory=factory,
    )
    assert backend.name == "deepseek:deepseek-chat"
    assert not backend.supports_json_mode
    assert made[0].api_key == "sk-test"
    assert made[0].base_url == PROVIDERS["deepseek"].base_url


def test_only_moonshot_has_native_json_mode():
    assert [k for k, spec in PROVIDERS.items() if spec.json_mode] == ["moonshot"]


def test_unknown_provider():
    with pytest.raises(ProviderError, match="Unknown provider: nope"):
        resolve_backend("nope:model", env={}, client_factory=FakeClient)


def test_missing_key_names_the_variable():
    with pytest.raises(ProviderError, match="GROQ_API_KEY"):
        resolve_backend("groq:gemma2-9b-it", env={"GROQ_API_KEY": "   "}, client_factory=FakeClient)


def test_complete_requests_json_object_only_in_json_mode():
    completions = FakeCompletions()
    backend = ChatBackend(PROVIDERS["moonshot"], "kimi", FakeClient("k", "u", completions))
    assert backend.complete([{"role": "user", "content": "hi"}], 0, json_mode=True) == "hello"
    assert backend.complete([{"role": "user", "content": "hi"}], 0.6) == "hello"
    first, second = completions.calls
    assert first["response_format"] == {"type": "json_object"}
    assert first["temperature"] == 0
    assert "response_format" not in second


def test_complete_handles_null_content():
    backend = ChatBackend(PROVIDERS["groq"], "m", FakeClient("k", "u", FakeCompletions(reply=None)))
    assert backend.complete([], 0) == ""


def test_stream_skips_empty_deltas():
    chunks = [_chunk("Hel"), _chunk(None), SimpleNamespace(choices=[]), _chunk(""), _chunk("lo")]
    completions = FakeCompletions(chunks=chunks)
    backend = ChatBackend(PROVIDERS["mistral"], "m", FakeClient("k", "u", completions))
    assert "".join(backend.stream([], 0.6)) == "Hello"
    assert completions.calls[0]["stream"] is True


def test_missing_credentials():
    assert missing_credentials({})
    assert missing_credentials({"GROQ_API_KEY": "  "})
    assert not missing_credentials({"MISTRAL_API_KEY": "abc"})


def test_provider_label():
    assert provider_label("moonshot") == "MoonShot AI"
    assert provider_label("custom") == "custom"
