# security_rules.py
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum


MIN_LEVEL = 1
MAX_LEVEL = 5
BLOCK_LEVEL = 4

# --- Patterns ---

# Destructive intent. Order matters only for reporting the first hit.
DANGEROUS_PATTERNS = [
    r"\brm\s+-rf",
    r"\brm\s+--recursive",
    r"\brm\s+.*\*\s+-rf",
    r"\bformat\s+",
    r"\bdd\s+",
    r"\bsudo\s+rm",
    r"\bchmod\s+.*777",
    r"\bchown\s+.*root",
    r"\bmv\s+.*/dev/null",
    r":\(\)\s*\{\s*:\|\s*:\s*&\s*\}",  # fork bomb
    r"\bshutdown\s+-h\s+now",
    r"\bpoweroff",
    r"\binit\s+0",
    r"\bmkfs",
    r"\bfsck",
]

# Programs that need a real terminal (not exhaustive)
TTY_PATTERNS = [
    r"\b(btop|htop|top|vim|nvim|less|more|ssh|tmux|screen|man)\b",
]

# Elevation / credential prompts
INTERACTIVE_INPUT_PATTERNS = [
    r"\bsudo\b",
    r"(?i)\bpasswd\b|\bpassword\b",
]

_DANGEROUS_RE = [re.compile(p, re.IGNORECASE) for p in DANGEROUS_PATTERNS]


class ExecutionMode(str, Enum):
    HEADLESS = "headless"
    INTERACTIVE_TTY = "interactive_tty"


def _match_any(patterns, cmd: str) -> bool:
    for pat in patterns:
        if re.search(pat, cmd):
            return True
    return False


def matched_pattern(command: str) -> str | None:
    """Return the first blacklist pattern the command hits, or None."""
    cmd = command or ""
    for rx in _DANGEROUS_RE:
        if rx.search(cmd):
            return rx.pattern
    return None


def is_dangerous(command: str) -> bool:
    """
    Static blacklist check. Case-insensitive, first match wins.
    False positives are acceptable here, misses are not.
    """
    return matched_pattern(command) is not None


def needs_tty(command: str) -> bool:
    return _match_any(TTY_PATTERNS, command or "")


def needs_interactive_input(command: str) -> bool:
    return _match_any(INTERACTIVE_INPUT_PATTERNS, command or "")


def classify_execution(command: str) -> ExecutionMode:
    if needs_tty(command):
        return ExecutionMode.INTERACTIVE_TTY
    return ExecutionMode.HEADLESS


# --- Risk merge ---

def clamp_danger_level(value: object) -> int:
    """
    Model-reported danger level is untrusted: numbers (and numeric strings)
    are clamped into [1, 5], everything else counts as 1.
    """
    if isinstance(value, bool) or value is None:
        return MIN_LEVEL
    if isinstance(value, int):
        # compared as int: huge JSON integers do not fit in a float
        return min(MAX_LEVEL, max(MIN_LEVEL, value))
    if isinstance(value, float):
        num = value
    elif isinstance(value, str):
        try:
            num = float(value.strip())
        except ValueError:
            return MIN_LEVEL
    else:
        return MIN_LEVEL
    if math.isnan(num):
        return MIN_LEVEL
    return int(min(MAX_LEVEL, max(MIN_LEVEL, num)))


@dataclass(frozen=True)
class RiskVerdict:
    pattern_flag: bool
    model_level: int
    final_level: int

    @property
    def blocked(self) -> bool:
        return self.final_level >= BLOCK_LEVEL

    @property
    def cautious(self) -> bool:
        return self.final_level == 3

    @property
    def style(self) -> str:
        if self.blocked:
            return "red"
        if self.cautious:
            return "yellow"
        return "green"


def merge_risk(
    command: str,
    model_danger_level: object,
    pattern_flag: bool | None = None,
) -> RiskVerdict:
    """
    final = max(clamp(model), 5 if the blacklist matched else 1).
    Level 4+ is a hard ceiling: callers never execute it, --yes included.
    """
    if pattern_flag is None:
        pattern_flag = is_dangerous(command)
    model_level = clamp_danger_level(model_danger_level)
    local_level = MAX_LEVEL if pattern_flag else MIN_LEVEL
    return RiskVerdict(
        pattern_flag=bool(pattern_flag),
        model_level=model_level,
        final_level=max(model_level, local_level),
    )
