# aix_core/executor.py
from __future__ import annotations

import subprocess
import time
from dataclasses import dataclass
from typing import Optional

from rich.console import Console
from rich.text import Text

from security_rules import ExecutionMode, classify_execution, needs_interactive_input

from .exec_limits import run_on_host_with_limits
from .limits import ExecLimits, load_limits_for_level

INTERACTIVE_INPUT_NOTICE = "[interactive mode] Waiting for input (e.g. password)..."
TTY_NOTICE = "[interactive TTY] Attaching to terminal..."


@dataclass
class ExecutionResult:
    mode: ExecutionMode
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_sec: float = 0.0
    killed: bool = False
    kill_reason: str = "none"
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and self.error is None


def run_interactive(command: str) -> ExecutionResult:
    """Child inherits stdin/stdout/stderr: passwords, TUIs and keypresses just work."""
    t0 = time.time()
    try:
        proc = subprocess.run(command, shell=True)
    except OSError as e:
        return ExecutionResult(
            mode=ExecutionMode.INTERACTIVE_TTY, exit_code=127,
            duration_sec=round(time.time() - t0, 3), error=str(e),
        )
    code = proc.returncode
    return ExecutionResult(
        mode=ExecutionMode.INTERACTIVE_TTY,
        exit_code=code,
        duration_sec=round(time.time() - t0, 3),
        error=None if code == 0 else f"Process exited with code {code}",
    )


def run_headless(command: str, limits: ExecLimits, keep_terminal: bool = False) -> ExecutionResult:
    try:
        res = run_on_host_with_limits(
            command,
            timeout_sec=limits.timeout_sec,
            grace_kill_sec=limits.grace_kill_sec,
            mem_watch_mb=limits.memory_mb,
            new_session=not keep_terminal,
        )
    except OSError as e:
        return ExecutionResult(mode=ExecutionMode.HEADLESS, exit_code=127, error=str(e))

    error = None
    if res.killed:
        error = f"Interrupted: {res.kill_reason.replace('_', ' ')}"
    elif res.code != 0:
        error = f"Command failed with exit code {res.code}"
    return ExecutionResult(
        mode=ExecutionMode.HEADLESS,
        exit_code=res.code,
        stdout=res.stdout,
        stderr=res.stderr,
        duration_sec=res.duration_sec,
        killed=res.killed,
        kill_reason=res.kill_reason,
        error=error,
    )


def execute(
    command: str,
    *,
    animation=None,
    limits: Optional[ExecLimits] = None,
    console: Optional[Console] = None,
) -> ExecutionResult:
    """
    Dispatch an approved command:
      - TTY programs (top, vim, ssh...) run attached to the terminal,
        animation stopped first, nothing captured;
      - everything else runs headless with stdout/stderr captured.
    sudo/passwd/password commands stop the animation before the spawn so
    the password prompt is not drawn over. Never raises for spawn errors.
    """
    console = console or Console()
    limits = limits or load_limits_for_level(1)
    mode = classify_execution(command)
    interactive_input = needs_interactive_input(command)

    if animation is not None and not (mode is ExecutionMode.INTERACTIVE_TTY or interactive_input):
        animation.start()
    try:
        if interactive_input:
            console.print(Text(INTERACTIVE_INPUT_NOTICE, style="dim"))
        if mode is ExecutionMode.INTERACTIVE_TTY:
            console.print(Text(TTY_NOTICE, style="dim"))
            return run_interactive(command)
        return run_headless(command, limits, keep_terminal=interactive_input)
    finally:
        if animation is not None:
            animation.stop()
