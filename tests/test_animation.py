import io
import signal
import time

import pytest

from aix_core import animation
from aix_core.animation import (
    CLEAR_LINE,
    HIDE_CURSOR,
    SHOW_CURSOR,
    Animation,
    render_frame,
    stop_all,
)


class RecordingStream(io.StringIO):
    """StringIO that also remembers each write call."""

    def __init__(self):
        super().__init__()
        self.writes = []

    def write(self, s):
        self.writes.append(s)
        return super().write(s)


def test_start_hides_cursor_and_repaints():
    out = RecordingStream()
    anim = Animation("Thinking", stream=out, interval=0.01)
    anim.start()
    time.sleep(0.05)
    anim.stop()
    assert out.writes[0] == HIDE_CURSOR
    assert anim.frame >= 1
    assert any("T" in w and "\x1b[38;5;" in w for w in out.writes[1:-1])


def test_stop_ends_with_cursor_visible():
    out = RecordingStream()
    anim = Animation("Executing", stream=out, interval=0.01)
    anim.start()
    time.sleep(0.02)
    anim.stop()
    assert out.getvalue().endswith(SHOW_CURSOR)
    assert out.writes[-1] == CLEAR_LINE + SHOW_CURSOR
    assert not anim.running


def test_second_stop_is_noop():
    out = RecordingStream()
    anim = Animation("Thinking", stream=out, interval=0.01)
    anim.start()
    anim.stop()
    written = len(out.writes)
    anim.stop()
    assert len(out.writes) == written
    assert out.getvalue().endswith(SHOW_CURSOR)


def test_stop_without_start_writes_nothing():
    out = RecordingStream()
    Animation("Idle", stream=out).stop()
    assert out.writes == []


def test_no_repaint_after_stop():
    out = RecordingStream()
    anim = Animation("Thinking", stream=out, interval=0.005)
    anim.start()
    time.sleep(0.02)
    anim.stop()
    written = len(out.writes)
    time.sleep(0.03)
    assert len(out.writes) == written
    assert out.writes[-1].endswith(SHOW_CURSOR)


def test_context_manager_restores_cursor_on_error():
    out = RecordingStream()
    with pytest.raises(RuntimeError):
        with Animation("Thinking", stream=out, interval=0.01):
            raise RuntimeError("backend exploded")
    assert out.getvalue().endswith(SHOW_CURSOR)


def test_context_manager_restores_cursor_on_keyboard_interrupt():
    out = RecordingStream()
    with pytest.raises(KeyboardInterrupt):
        with Animation("Thinking", stream=out, interval=0.01):
            raise KeyboardInterrupt
    assert out.getvalue().endswith(SHOW_CURSOR)


def test_stop_all_stops_live_animations():
    a, b = RecordingStream(), RecordingStream()
    first = Animation("one", stream=a, interval=0.01).start()
    second = Animation("two", stream=b, interval=0.01).start()
    stop_all()
    assert not first.running and not second.running
    assert a.getvalue().endswith(SHOW_CURSOR)
    assert b.getvalue().endswith(SHOW_CURSOR)


def test_sigterm_handler_restores_cursor_and_exits():
    out = RecordingStream()
    anim = Animation("Thinking", stream=out, interval=0.01).start()
    with pytest.raises(SystemExit) as exc:
        animation._on_sigterm(signal.SIGTERM, None)
    assert exc.value.code == 128 + signal.SIGTERM
    assert out.getvalue().endswith(SHOW_CURSOR)
    assert not anim.running


def test_install_guards_is_idempotent(monkeypatch):
    registered = []
    handlers = []
    monkeypatch.setattr(animation, "_GUARDS_INSTALLED", False)
    monkeypatch.setattr(animation.atexit, "register", registered.append)
    monkeypatch.setattr(animation.signal, "signal", lambda sig, fn: handlers.append((sig, fn)))
    animation.install_terminal_guards()
    animation.install_terminal_guards()
    assert registered == [stop_all]
    assert handlers == [(signal.SIGTERM, animation._on_sigterm)]


def test_render_frame_colours_every_character():
    frame = render_frame("abc", 0)
    assert frame.startswith(CLEAR_LINE)
    assert frame.count("\x1b[38;5;") == 3
    assert frame.endswith("\x1b[0m")
    codes = [int(part.split("m", 1)[0]) for part in frame.split("\x1b[38;5;")[1:]]
    assert all(232 <= c <= 255 for c in codes)
