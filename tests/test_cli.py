import io
import json

import pytest
from rich.console import Console

import aix
from aix_core.aix_logging import JsonlLogger, preview
from aix_core.config import AppConfig
from aix_core.providers import PROVIDERS


@pytest.fixture
def cli(monkeypatch, tmp_path):
    """Isolated environment: no .env, no user config, no keys, captured console."""
    monkeypatch.setattr(aix, "load_env", lambda: None)
    monkeypatch.setenv("AIX_CONFIG", str(tmp_path / "none.yml"))
    monkeypatch.setenv("AIX_LOG_DIR", str(tmp_path / "logs"))
    for var in ("AIX_DEFAULT_PROVIDER", "AIX_DEFAULT_MODEL"):
        monkeypatch.delenv(var, raising=False)
    for spec in PROVIDERS.values():
        monkeypatch.delenv(spec.key_env, raising=False)
    console = Console(file=io.StringIO(), width=120, color_system=None)
    monkeypatch.setattr(aix, "console", console)
    return console


def test_exec_parser_defaults():
    args = aix.build_parser(AppConfig()).parse_args(["exec", "list files"])
    assert args.command == "exec"
    assert args.natural_language == "list files"
    assert args.model == "moonshot:kimi-k2-0711-preview"
    assert args.yes is False


def test_exec_parser_flags():
    args = aix.build_parser(AppConfig()).parse_args(["exec", "list files", "-y", "-m", "groq:gemma2-9b-it"])
    assert args.yes is True
    assert args.model == "groq:gemma2-9b-it"


def test_chat_parser_uses_configured_temperature():
    args = aix.build_parser(AppConfig(temperature=0.3)).parse_args(["chat", "hi", "-s"])
    assert args.temperature == 0.3
    assert args.stream is True


def test_subcommand_is_required():
    with pytest.raises(SystemExit) as exc:
        aix.build_parser(AppConfig()).parse_args([])
    assert exc.value.code == 2


def test_models_lists_every_provider_without_keys(cli):
    assert aix.main(["models"]) == 0
    out = cli.file.getvalue()
    assert "moonshot:kimi-k2-0711-preview (default)" in out
    assert "aix 1.0.0 (" not in out  # offline listing: no banner
    for spec in PROVIDERS.values():
        assert spec.label in out


def test_missing_keys_lists_variables(cli):
    assert aix.main(["exec", "list files"]) == 1
    out = cli.file.getvalue()
    for spec in PROVIDERS.values():
        assert spec.key_env in out


def test_exec_wires_backend_and_flags(cli, monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "gsk_test")
    seen = {}

    def fake_resolve(model, **kwargs):
        seen["model"] = model
        return "backend"

    def fake_run_exec(intent, backend, *, auto_approve, console, config):
        seen.update(intent=intent, backend=backend, auto_approve=auto_approve)
        return 3

    monkeypatch.setattr(aix, "resolve_backend", fake_resolve)
    monkeypatch.setattr(aix, "run_exec", fake_run_exec)
    assert aix.main(["exec", "wipe disk", "--yes", "-m", "groq:llama-3.3-70b-versatile"]) == 3
    assert seen == {
        "model": "groq:llama-3.3-70b-versatile",
        "intent": "wipe disk",
        "backend": "backend",
        "auto_approve": True,
    }
    assert "aix 1.0.0 (Groq:llama-3.3-70b-versatile)" in cli.file.getvalue()


def test_provider_error_is_reported(cli, monkeypatch):
    monkeypatch.setenv("MOONSHOT_API_KEY", "sk-test")
    assert aix.main(["exec", "list files", "-m", "nope:model"]) == 1
    assert "Unknown provider: nope" in cli.file.getvalue()


def test_ask_reports_unreadable_file(cli, monkeypatch, tmp_path):
    monkeypatch.setenv("MOONSHOT_API_KEY", "sk-test")
    assert aix.main(["ask", str(tmp_path / "missing.txt"), "what is this?"]) == 1
    assert "Error reading file" in cli.file.getvalue()


def test_cli_entry_maps_interrupt_to_130(monkeypatch):
    stopped = []

    def interrupted():
        raise KeyboardInterrupt

    monkeypatch.setattr(aix, "install_terminal_guards", lambda: None)
    monkeypatch.setattr(aix, "stop_all", lambda: stopped.append(True))
    monkeypatch.setattr(aix, "main", interrupted)
    with pytest.raises(SystemExit) as exc:
        aix.cli_entry()
    assert exc.value.code == aix.EXIT_INTERRUPTED
    assert stopped == [True]


# ===== jsonl logging =====

def test_logger_masks_secrets(tmp_path):
    log = JsonlLogger(tmp_path / "logs")
    log.write({
        "event": "synthesis",
        "raw": "use sk-abcdefghijklmnopqrstuvwxyz0123 here",
        "nested": {"header": "Authorization: Bearer abc.def"},
        "items": ["api_key=hunter2"],
    })
    files = list((tmp_path / "logs").glob("*.jsonl"))
    assert len(files) == 1
    event = json.loads(files[0].read_text(encoding="utf-8"))
    assert "sk-abcdefghijklmnopqrstuvwxyz0123" not in event["raw"]
    assert "abc.def" not in event["nested"]["header"]
    assert "hunter2" not in event["items"][0]
    assert files[0].name == f"{event['ts'][:10]}.jsonl"


def test_logger_appends(tmp_path):
    log = JsonlLogger(tmp_path)
    log.write({"event": "a"})
    log.write({"event": "b"})
    (path,) = tmp_path.glob("*.jsonl")
    assert [json.loads(l)["event"] for l in path.read_text(encoding="utf-8").splitlines()] == ["a", "b"]


def test_preview_truncates():
    assert preview(None) == ""
    assert preview("short") == "short"
    long = "x" * 50
    assert preview(long, limit=10).startswith("x" * 10 + "\n...[truncated 40 chars]")
