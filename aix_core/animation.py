# aix_core/animation.py
from __future__ import annotations

import atexit
import math
import signal
import sys
import threading
import weakref
from typing import Optional, TextIO

HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"
CLEAR_LINE = "\r\x1b[K"
DIM = "\x1b[2m"
RESET = "\x1b[0m"

STEPS = 24
PHASE_STEP = 0.3
SPEED_FACTOR = 0.3
GREY_CODES = [232 + i for i in range(STEPS)]  # 256-colour greyscale ramp

# every started-and-not-yet-stopped animation, for the exit/signal guards
_LIVE: "weakref.WeakSet[Animation]" = weakref.WeakSet()
_GUARDS_INSTALLED = False


def render_frame(text: str, frame: int) -> str:
    """One repaint: a sine brightness wave travelling across the label."""
    parts = [CLEAR_LINE, DIM]
    for i, ch in enumerate(text):
        phase = (i * PHASE_STEP) - (frame * SPEED_FACTOR)
        brightness = (math.sin(phase) + 1) / 2
        idx = int(brightness * (STEPS - 1))
        parts.append(f"\x1b[38;5;{GREY_CODES[idx]}m{ch}")
    parts.append(RESET)
    return "".join(parts)


class Animation:
    """
    Busy indicator for long steps (model call, command run).

    start() hides the cursor and repaints on a daemon thread; stop() is
    idempotent and always leaves SHOW_CURSOR as the last thing written.
    Use it as a context manager so every exit path releases the terminal.
    """

    def __init__(self, label: str = "Processing", stream: Optional[TextIO] = None, interval: float = 0.05):
        self.label = label
        self.stream = stream
        self.interval = interval
        self.frame = 0
        self.running = False
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _out(self) -> TextIO:
        return self.stream if self.stream is not None else sys.stdout

    def _write(self, s: str) -> None:
        out = self._out()
        out.write(s)
        out.flush()

    def _loop(self) -> None:
        while not self._stop.is_set():
            self._write(render_frame(self.label, self.frame))
            self.frame += 1
            self._stop.wait(self.interval)

    def start(self) -> "Animation":
        if self.running:
            return self
        self.running = True
        self._stop.clear()
        _LIVE.add(self)
        self._write(HIDE_CURSOR)
        self._thread = threading.Thread(target=self._loop, name=f"animation-{self.label}", daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        _LIVE.discard(self)
        self._write(CLEAR_LINE + SHOW_CURSOR)

    def __enter__(self) -> "Animation":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def stop_all() -> None:
    for anim in list(_LIVE):
        anim.stop()


def _on_sigterm(signum, frame) -> None:
    stop_all()
    # SystemExit unwinds through the `with Animation(...)` blocks as well
    raise SystemExit(128 + signum)


def install_terminal_guards() -> None:
    """
    Once per process: restore the cursor on interpreter exit and on SIGTERM.
    SIGINT keeps Python's default KeyboardInterrupt, which unwinds through
    the context managers; the CLI maps it to exit 130.
    """
    global _GUARDS_INSTALLED
    if _GUARDS_INSTALLED:
        return
    atexit.register(stop_all)
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, _on_sigterm)
    _GUARDS_INSTALLED = True
