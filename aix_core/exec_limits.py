# aix_core/exec_limits.py
from __future__ import annotations

import contextlib
import os
import signal
import subprocess
import tempfile
import time
from dataclasses import dataclass
from typing import IO, Dict, List, Optional

import psutil

_POSIX = os.name == "posix"
POLL_SEC = 0.05
MB = 1024 * 1024


@dataclass
class RunResult:
    code: int
    stdout: str
    stderr: str
    duration_sec: float
    killed: bool
    kill_reason: str  # "none" | "timeout" | "memory_exceeded"


def _process_tree(pid: int) -> List[psutil.Process]:
    """The process followed by all of its descendants; [] once it is gone."""
    try:
        root = psutil.Process(pid)
        return [root, *root.children(recursive=True)]
    except psutil.Error:
        return []


def _tree_rss_mb(pid: int) -> float:
    total = 0
    for p in _process_tree(pid):
        with contextlib.suppress(psutil.Error):
            total += p.memory_info().rss
    return total / MB


def _signal_tree(procs: List[psutil.Process], kill: bool) -> None:
    # leaves first, so a parent cannot respawn what we just stopped
    for p in reversed(procs):
        with contextlib.suppress(psutil.Error):
            if kill:
                p.kill()
            else:
                p.terminate()


def _stop_tree(proc: subprocess.Popen, grace_sec: float, own_group: bool) -> None:
    """
    SIGTERM, wait up to grace_sec, then SIGKILL whatever is left.
    A child in its own session is signalled as a process group; otherwise
    (Windows, or sudo sharing our terminal) the tree is walked with psutil.
    The shell itself is waited on through Popen so its exit status survives.
    """
    procs = _process_tree(proc.pid)
    if _POSIX and own_group:
        try:
            os.killpg(os.getpgid(proc.pid), signal.SIGTERM)
        except (ProcessLookupError, PermissionError):
            _signal_tree(procs, kill=False)
    else:
        _signal_tree(procs, kill=False)

    deadline = time.monotonic() + grace_sec
    with contextlib.suppress(subprocess.TimeoutExpired):
        proc.wait(timeout=grace_sec)
    _, alive = psutil.wait_procs(procs[1:], timeout=max(0.0, deadline - time.monotonic()))
    if proc.poll() is None:
        if _POSIX and own_group:
            with contextlib.suppress(ProcessLookupError, PermissionError):
                os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
        with contextlib.suppress(OSError):
            proc.kill()
    _signal_tree(alive, kill=True)


def _drain(f: IO[bytes]) -> str:
    f.seek(0)
    return f.read().decode("utf-8", errors="replace")


def run_on_host_with_limits(
    command: str,
    *,
    timeout_sec: Optional[float],
    grace_kill_sec: float,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    mem_watch_mb: Optional[int] = None,
    new_session: bool = True,
) -> RunResult:
    """
    Run a shell command with stdout/stderr captured to temp files (a chatty
    child never stalls on a full pipe), under an optional wall-clock timeout
    (None = unbounded) and an optional RSS watchdog over the whole tree.

    new_session=False keeps the controlling terminal, which sudo needs to prompt.
    Raises OSError if the shell itself cannot be spawned.
    """
    started = time.monotonic()
    deadline = None if timeout_sec is None else started + timeout_sec
    own_group = _POSIX and new_session
    kill_reason = "none"

    with tempfile.TemporaryFile() as out, tempfile.TemporaryFile() as err:
        proc = subprocess.Popen(
            command,
            shell=True,
            cwd=cwd,
            env=env,
            stdout=out,
            stderr=err,
            start_new_session=own_group,
        )
        try:
            while True:
                try:
                    proc.wait(timeout=POLL_SEC)
                    break
                except subprocess.TimeoutExpired:
                    pass
                if deadline is not None and time.monotonic() > deadline:
                    kill_reason = "timeout"
                elif mem_watch_mb is not None and _tree_rss_mb(proc.pid) > mem_watch_mb:
                    kill_reason = "memory_exceeded"
                else:
                    continue
                _stop_tree(proc, grace_kill_sec, own_group)
                proc.wait()
                break
        except BaseException:
            # Ctrl+C / SIGTERM while waiting: the child goes down with us
            if proc.poll() is None:
                _stop_tree(proc, grace_kill_sec, own_group)
                proc.wait()
            raise
        stdout, stderr = _drain(out), _drain(err)

    return RunResult(
        code=proc.returncode,
        stdout=stdout,
        stderr=stderr,
        duration_sec=round(time.monotonic() - started, 3),
        killed=kill_reason != "none",
        kill_reason=kill_reason,
    )
