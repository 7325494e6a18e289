# aix_core/pipeline.py
from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from aix_brain import EmptyCommand, ParseFailure, SynthesisError, parse_proposal, synthesize
from security_rules import ExecutionMode, matched_pattern, merge_risk

from .aix_logging import JsonlLogger, logger as default_logger, preview
from .animation import Animation
from .config import AppConfig
from .executor import ExecutionResult, execute
from .gate import confirm, render_proposal
from .limits import load_limits_for_level
from .sysinfo import probe

# exit codes of `aix exec`
EXIT_OK = 0
EXIT_EXECUTION_FAILED = 1
EXIT_PARSE_FAILED = 2
EXIT_BLOCKED = 3
EXIT_CANCELLED = 4
EXIT_SYNTHESIS_FAILED = 5


def render_result(console: Console, result: ExecutionResult) -> None:
    if result.ok:
        if result.mode is ExecutionMode.INTERACTIVE_TTY:
            return
        if result.stdout:
            console.print(Panel.fit(Text(result.stdout.rstrip("\n")), title="Output", border_style="green", padding=(0, 1)))
        if result.stderr:
            console.print(Panel.fit(Text(result.stderr.rstrip("\n")), title="Error Output", border_style="yellow", padding=(0, 1)))
        if not result.stdout and not result.stderr:
            console.print(Text("Command finished with no output.", style="dim"))
        return

    body = Text(f"[!] {result.error or 'Command failed'}\nexit code: {result.exit_code}")
    if result.stdout:
        body.append(f"\n\nstdout:\n{result.stdout.rstrip()}")
    if result.stderr:
        body.append(f"\n\nstderr:\n{result.stderr.rstrip()}")
    console.print(Panel.fit(body, border_style="red", padding=(0, 1)))


def run_exec(
    intent: str,
    backend,
    *,
    auto_approve: bool = False,
    console: Optional[Console] = None,
    config: Optional[AppConfig] = None,
    log: Optional[JsonlLogger] = None,
    probe_fn=probe,
    synthesize_fn=synthesize,
    merge_fn=merge_risk,
    confirm_fn=confirm,
    execute_fn=execute,
    animation_factory=Animation,
) -> int:
    """
    intent -> system probe + model -> parse -> risk merge -> (block | confirm) -> execute.
    Every stage is terminal on failure; nothing is retried. Returns an EXIT_* code.
    """
    console = console or Console()
    config = config or AppConfig()
    log = log or (JsonlLogger(config.log_dir) if config.log_dir else default_logger)
    backend_name = getattr(backend, "name", str(backend))

    console.print(Text(f'Converting: "{intent}"', style="dim"))
    console.print()

    # === 1) system context + model call, under the busy animation ===
    try:
        with animation_factory("Thinking"):
            system_info = probe_fn(config.probe_timeout_sec)
            raw = synthesize_fn(intent, system_info, backend)
    except SynthesisError as e:
        log.write({"event": "synthesis_error", "intent": intent, "backend": backend_name, "error": str(e)})
        console.print(Panel.fit(Text(str(e)), title="Model request failed", border_style="red"))
        return EXIT_SYNTHESIS_FAILED

    log.write({"event": "synthesis", "intent": intent, "backend": backend_name,
               "system_info": system_info, "raw": preview(raw)})

    # === 2) parse ===
    parsed = parse_proposal(raw)
    if isinstance(parsed, ParseFailure):
        log.write({"event": "parse_failure", "intent": intent, "reason": parsed.reason, "raw": preview(parsed.raw)})
        console.print(Text(f"Could not parse the model reply ({parsed.reason}). Raw output:", style="red"))
        console.print(Text(parsed.raw))
        return EXIT_PARSE_FAILED
    if isinstance(parsed, EmptyCommand):
        log.write({"event": "parse_failure", "intent": intent, "reason": "empty command", "raw": preview(parsed.raw)})
        console.print(Text("No command could be extracted from the model reply. Raw output:", style="red"))
        console.print(Text(parsed.raw))
        return EXIT_PARSE_FAILED
    proposal = parsed

    # === 3) risk ===
    verdict = merge_fn(proposal.command, proposal.danger_level)
    log.write({"event": "risk_verdict", "command": proposal.command, "pattern_flag": verdict.pattern_flag,
               "pattern": matched_pattern(proposal.command),
               "model_level": verdict.model_level, "final_level": verdict.final_level})
    render_proposal(console, proposal, verdict)
    if verdict.blocked:
        log.write({"event": "blocked", "command": proposal.command, "final_level": verdict.final_level})
        return EXIT_BLOCKED

    # === 4) consent ===
    if not confirm_fn(proposal, verdict, auto_approve, console):
        log.write({"event": "cancelled", "command": proposal.command})
        console.print("Command execution cancelled")
        return EXIT_CANCELLED

    # === 5) execute ===
    limits = load_limits_for_level(verdict.final_level, config.limits)
    result = execute_fn(
        proposal.command,
        animation=animation_factory("Executing"),
        limits=limits,
        console=console,
    )
    log.write({
        "event": "execution",
        "command": proposal.command,
        "mode": result.mode.value,
        "exit_code": result.exit_code,
        "duration_sec": result.duration_sec,
        "kill_reason": result.kill_reason,
        "error": result.error,
        "stdout": preview(result.stdout),
        "stderr": preview(result.stderr),
    })
    render_result(console, result)
    return EXIT_OK if result.ok else EXIT_EXECUTION_FAILED
