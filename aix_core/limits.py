# aix_core/limits.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional


@dataclass
class ExecLimits:
    timeout_sec: Optional[int]        # None -> wait for the command however long it takes
    grace_kill_sec: int
    memory_mb: Optional[int] = None   # None -> no RSS watchdog


# Headless limits per final risk level. Levels 4 and 5 never execute.
# Commands run to completion unless `limits:` in the user config sets a bound.
DEFAULT_LIMITS: Dict[str, dict] = {
    "1": {"timeout_sec": None, "grace_kill_sec": 3, "memory_mb": None},
    "2": {"timeout_sec": None, "grace_kill_sec": 3, "memory_mb": None},
    "3": {"timeout_sec": None, "grace_kill_sec": 3, "memory_mb": None},
}


def _opt_int(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def load_limits_for_level(level: int, overrides: Optional[Mapping[str, dict]] = None) -> ExecLimits:
    """
    Limits for a final risk level 1..3; `overrides` is the `limits:` section
    of ~/.aix/config.yml, e.g. {"3": {"timeout_sec": 120}}.
    """
    key = str(level)
    if key not in DEFAULT_LIMITS:
        raise KeyError(f"no execution limits for risk level {level}")
    d = dict(DEFAULT_LIMITS[key])
    if overrides and isinstance(overrides.get(key), Mapping):
        d.update(overrides[key])
    return ExecLimits(
        timeout_sec=_opt_int(d.get("timeout_sec")),
        grace_kill_sec=_opt_int(d.get("grace_kill_sec")) or 3,
        memory_mb=_opt_int(d.get("memory_mb")),
    )
