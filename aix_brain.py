# aix_brain.py
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Union

WIRE_FIELDS = ("command", "explanation", "arguments", "dangerLevel")

SCHEMA_EXAMPLE = """{
  "command": "string, the command line to run",
  "explanation": "string, human-readable explanation of what the command does",
  "arguments": [
    { "arg": "the literal argument token", "reason": "why this argument is needed" }
  ],
  "dangerLevel": 1
}"""

SAFETY_RULES = [
    "Prefer non-destructive options by default (e.g., dry-run flags if available).",
    "Never include redirections to /dev/sda or other raw block devices, or destructive storage ops.",
    "Never pipe unknown network content directly into a shell (e.g. curl ... | sh).",
    (
        "If the intent is inherently destructive, set dangerLevel to 4 or 5 and"
        " still provide the minimal correct command."
    ),
]


class SynthesisError(RuntimeError):
    """The model backend call failed (network, auth, rate limit...)."""

    def __init__(self, message: str, backend: str | None = None):
        super().__init__(message)
        self.backend = backend


# =====================================================
# Data
# =====================================================

@dataclass(frozen=True)
class ArgumentNote:
    arg: str
    reason: str


@dataclass(frozen=True)
class CommandProposal:
    command: str
    explanation: str = ""
    arguments: tuple[ArgumentNote, ...] = ()
    danger_level: object = 1  # untrusted, clamped by security_rules.merge_risk

    def to_wire(self) -> dict:
        return {
            "command": self.command,
            "explanation": self.explanation,
            "arguments": [{"arg": a.arg, "reason": a.reason} for a in self.arguments],
            "dangerLevel": self.danger_level,
        }


@dataclass(frozen=True)
class ParseFailure:
    raw: str
    reason: str = "invalid JSON"


@dataclass(frozen=True)
class EmptyCommand:
    raw: str


ParseResult = Union[CommandProposal, ParseFailure, EmptyCommand]


@dataclass(frozen=True)
class SynthesisRequest:
    intent: str
    system_info: str
    strict: bool = field(default=False)


# =====================================================
# Prompts
# =====================================================

def build_system_prompt(system_info: str) -> str:
    """System message for providers with a native JSON mode."""
    rules = "\n".join(f"- {r}" for r in [
        "Output must be a JSON Object, not array or other types.",
        "Provide a minimal, safe command for the user's intent.",
        "Explain each argument in 'arguments'.",
        "Set dangerLevel in [1..5], where 5 is very dangerous.",
        *SAFETY_RULES,
        "Adapt to system info below.",
    ])
    return (
        "You are a command generator and security analyzer for shell commands.\n"
        "You must output ONLY a valid JSON Object (no markdown, no extra text) with EXACT fields:\n"
        '{\n  "command": "string",\n  "explanation": "string",\n'
        '  "arguments": [{"arg":"string","reason":"string"}],\n  "dangerLevel": 1\n}\n'
        f"Rules:\n{rules}\n"
        f"System: {system_info}"
    )


def build_user_prompt(intent: str) -> str:
    return (
        f"User Intent:\n{intent}\n\n"
        "Return ONLY the JSON object with fields: command, explanation, arguments, dangerLevel."
    )


def build_prompt(intent: str, system_info: str) -> str:
    """Single prompt for providers without JSON mode: the schema lives in the text."""
    constraints = "\n".join(f"- {r}" for r in SAFETY_RULES)
    return (
        "You are a command generator and security analyzer.\n"
        "Given the user's natural language request and the current system info, "
        "produce a safe, minimal shell command that satisfies the intent.\n"
        "Additionally, explain the command and each argument, and assess a danger level "
        "from 1 (safe) to 5 (very dangerous).\n"
        "If multiple commands are needed, try to combine them safely with '&&' where reasonable.\n\n"
        "Strict output requirement:\n"
        "Return ONLY valid JSON (no markdown), with this exact shape:\n"
        f"{SCHEMA_EXAMPLE}\n\n"
        "Constraints:\n"
        f"- Adapt to this system:\n{system_info}\n"
        f"{constraints}\n\n"
        f"User Natural Language:\n{intent}\n"
    )


# =====================================================
# Synthesizers
# =====================================================

class JsonModeSynthesizer:
    """Native structured output: system + user messages, response_format=json_object."""

    strict = True

    def __init__(self, backend):
        self.backend = backend

    def synthesize(self, request: SynthesisRequest) -> str:
        messages = [
            {"role": "system", "content": build_system_prompt(request.system_info)},
            {"role": "user", "content": build_user_prompt(request.intent)},
        ]
        return _call(self.backend, messages, json_mode=True)


class PromptSynthesizer:
    """Prompt-enforced structure for backends lacking JSON mode."""

    strict = False

    def __init__(self, backend):
        self.backend = backend

    def synthesize(self, request: SynthesisRequest) -> str:
        messages = [{"role": "user", "content": build_prompt(request.intent, request.system_info)}]
        return _call(self.backend, messages, json_mode=False)


def _call(backend, messages, json_mode: bool) -> str:
    try:
        return backend.complete(messages, temperature=0, json_mode=json_mode)
    except Exception as e:  # the SDK raises a zoo of transport/API errors
        name = getattr(backend, "name", None)
        raise SynthesisError(f"Model request failed ({name}): {e}", backend=name) from e


def synthesizer_for(backend):
    if getattr(backend, "supports_json_mode", False):
        return JsonModeSynthesizer(backend)
    return PromptSynthesizer(backend)


def synthesize(intent: str, system_info: str, backend) -> str:
    synth = synthesizer_for(backend)
    return synth.synthesize(SynthesisRequest(intent=intent, system_info=system_info, strict=synth.strict))


# =====================================================
# Parsing
# =====================================================

_FENCE_RE = re.compile(r"\A```(?:json)?\s*\n?(.*?)\n?```\Z", flags=re.S)


def _unwrap_code_fence(s: str) -> str:
    """Only a reply that is entirely one fenced block is unwrapped."""
    m = _FENCE_RE.match(s)
    return m.group(1).strip() if m else s


def _arguments(value: object) -> tuple[ArgumentNote, ...]:
    if not isinstance(value, list):
        return ()
    notes = []
    for item in value:
        if not isinstance(item, dict):
            continue
        arg = item.get("arg")
        reason = item.get("reason")
        notes.append(ArgumentNote(
            arg="" if arg is None else str(arg),
            reason="" if reason is None else str(reason),
        ))
    return tuple(notes)


def parse_proposal(raw: str) -> ParseResult:
    """
    Strict decode of the model reply:
    - not JSON, or JSON that is not an object -> ParseFailure (raw kept verbatim)
    - object with empty/missing command        -> EmptyCommand
    - otherwise                                 -> CommandProposal
    Never raises.
    """
    raw = "" if raw is None else str(raw)
    text = _unwrap_code_fence(raw.strip())
    try:
        data = json.loads(text)
    except (ValueError, RecursionError):  # ValueError also covers the int digit limit
        return ParseFailure(raw=raw, reason="invalid JSON")
    if not isinstance(data, dict):
        return ParseFailure(raw=raw, reason=f"expected a JSON object, got {type(data).__name__}")

    command = data.get("command")
    if command is not None and not isinstance(command, str):
        return ParseFailure(raw=raw, reason="'command' must be a string")
    command = (command or "").strip()
    if not command:
        return EmptyCommand(raw=raw)

    explanation = data.get("explanation")
    return CommandProposal(
        command=command,
        explanation=explanation.strip() if isinstance(explanation, str) else "",
        arguments=_arguments(data.get("arguments")),
        danger_level=data.get("dangerLevel", 1),
    )


def dump_proposal(proposal: CommandProposal) -> str:
    return json.dumps(proposal.to_wire(), ensure_ascii=False)
