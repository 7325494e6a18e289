# aix.py: CLI entry (exec, chat, ask, stream, models)
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from openai import OpenAIError
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from aix_core.animation import Animation, install_terminal_guards, stop_all
from aix_core.config import AppConfig, load_env
from aix_core.pipeline import run_exec
from aix_core.providers import (
    KNOWN_MODELS,
    PROVIDERS,
    ProviderError,
    missing_credentials,
    parse_model_string,
    provider_label,
    resolve_backend,
)

CLI_NAME = "aix"
CLI_VERSION = "1.0.0"
EXIT_INTERRUPTED = 130

console = Console()


def build_parser(config: AppConfig) -> argparse.ArgumentParser:
    default_model = f"{config.default_provider}:{config.default_model}"
    parser = argparse.ArgumentParser(prog=CLI_NAME, description="AI CLI tool for multiple providers")
    parser.add_argument("--version", action="version", version=f"{CLI_NAME} {CLI_VERSION}")
    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    p = sub.add_parser("exec", help="Execute shell commands from natural language")
    p.add_argument("natural_language", metavar="natural-language",
                   help="Natural language description of what you want to do")
    p.add_argument("-m", "--model", default=default_model, help="Model to use (provider:model)")
    p.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompt")

    p = sub.add_parser("chat", help="Chat with a model")
    p.add_argument("message", help="Message to send to the model")
    p.add_argument("-m", "--model", default=default_model, help="Model to use (provider:model)")
    p.add_argument("-t", "--temperature", type=float, default=config.temperature, help="Temperature (0-1)")
    p.add_argument("-s", "--stream", action="store_true", help="Stream the response")

    p = sub.add_parser("ask", help="Ask a question with file context")
    p.add_argument("file", help="File to include as context")
    p.add_argument("question", help="Question about the file")
    p.add_argument("-m", "--model", default=default_model, help="Model to use (provider:model)")

    p = sub.add_parser("stream", help="Stream a conversation")
    p.add_argument("prompt", help="Initial prompt")
    p.add_argument("-m", "--model", default=default_model, help="Model to use (provider:model)")

    sub.add_parser("models", help="List available models")
    return parser


def print_banner(args: argparse.Namespace, config: AppConfig) -> None:
    provider, model = parse_model_string(getattr(args, "model", None), config.default_provider, config.default_model)
    console.print(Text(f"{CLI_NAME} {CLI_VERSION} ({provider_label(provider)}:{model})", style="dim"))


def print_missing_keys() -> None:
    lines = ["At least one API key is required for the following providers:"]
    lines += [f"  - {spec.label}: {spec.key_env}" for spec in PROVIDERS.values()]
    lines += ["", "Example: export OPENROUTER_API_KEY=your-key"]
    console.print(Panel.fit("\n".join(lines), border_style="red"))


# =====================================================
# Subcommands
# =====================================================

def cmd_models(config: AppConfig) -> int:
    console.print("Available Models:\n")
    console.print(f"• {config.default_provider}:{config.default_model} (default)\n")
    for provider, models in KNOWN_MODELS.items():
        console.print(f"[bold]{provider_label(provider)}:[/bold]")
        for model, desc in models:
            console.print(Text(f"• {provider}:{model} - {desc}"))
        console.print()
    console.print("Visit https://openrouter.ai/models for full list")
    return 0


def _print_streamed(backend, messages, temperature: float) -> None:
    anim = Animation("Thinking")
    with anim:
        for chunk in backend.stream(messages, temperature):
            anim.stop()  # first chunk: hand the line over to the text
            sys.stdout.write(chunk)
            sys.stdout.flush()
    sys.stdout.write("\n\n")


def cmd_chat(args, config: AppConfig) -> int:
    backend = resolve_backend(args.model, default_provider=config.default_provider, default_model=config.default_model)
    messages = [{"role": "user", "content": args.message}]
    if args.stream:
        _print_streamed(backend, messages, args.temperature)
        return 0
    with Animation("Thinking"):
        text = backend.complete(messages, args.temperature)
    console.print(Text(text))
    return 0


def cmd_ask(args, config: AppConfig) -> int:
    try:
        content = Path(args.file).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        console.print(Text(f"Error reading file: {args.file}\n{e}", style="red"))
        return 1
    backend = resolve_backend(args.model, default_provider=config.default_provider, default_model=config.default_model)
    prompt = f"File content:\n\n{content}\n\nQuestion: {args.question}"
    with Animation("Thinking"):
        text = backend.complete([{"role": "user", "content": prompt}], config.temperature)
    console.print(Text(f"File: {args.file}\nQuestion: {args.question}\n"))
    console.print(Text(text))
    return 0


def cmd_stream(args, config: AppConfig) -> int:
    backend = resolve_backend(args.model, default_provider=config.default_provider, default_model=config.default_model)
    _print_streamed(backend, [{"role": "user", "content": args.prompt}], config.temperature)
    return 0


def cmd_exec(args, config: AppConfig) -> int:
    backend = resolve_backend(args.model, default_provider=config.default_provider, default_model=config.default_model)
    return run_exec(args.natural_language, backend, auto_approve=args.yes, console=console, config=config)


HANDLERS = {
    "exec": cmd_exec,
    "chat": cmd_chat,
    "ask": cmd_ask,
    "stream": cmd_stream,
}


def main(argv: list[str] | None = None) -> int:
    load_env()
    config = AppConfig.load()
    args = build_parser(config).parse_args(argv)

    # static listing: needs no key and prints no banner
    if args.command == "models":
        return cmd_models(config)

    if missing_credentials():
        print_missing_keys()
        return 1

    print_banner(args, config)
    try:
        return HANDLERS[args.command](args, config)
    except ProviderError as e:
        console.print(Panel.fit(Text(str(e)), border_style="red"))
        return 1
    except OpenAIError as e:
        console.print(Panel.fit(Text(str(e)), title="Model request failed", border_style="red"))
        return 1


def cli_entry() -> None:
    install_terminal_guards()
    try:
        code = main()
    except KeyboardInterrupt:
        stop_all()
        code = EXIT_INTERRUPTED
    sys.exit(code)


if __name__ == "__main__":
    cli_entry()
