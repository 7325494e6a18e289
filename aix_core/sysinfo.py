# aix_core/sysinfo.py
from __future__ import annotations

import platform
import subprocess
import sys
from typing import Optional

from .config import DEFAULT_PROBE_TIMEOUT_SEC

WINDOWS_PROBE = 'systeminfo | findstr /B /C:"OS Name" /C:"OS Version"'
POSIX_PROBE = "uname -a"


def fallback_info() -> str:
    return f"Platform: {sys.platform}, Architecture: {platform.machine() or 'unknown'}"


def probe_command(platform_name: Optional[str] = None) -> str:
    name = sys.platform if platform_name is None else platform_name
    return WINDOWS_PROBE if name.startswith("win") else POSIX_PROBE


def probe(timeout_sec: Optional[float] = None, platform_name: Optional[str] = None) -> str:
    """
    One-line OS descriptor for the prompt. Never raises: a missing binary,
    non-zero exit, timeout or empty output all degrade to fallback_info().
    Bytes that are not valid UTF-8 (localized systeminfo) are replaced.
    """
    cmd = probe_command(platform_name)
    try:
        res = subprocess.run(
            cmd,
            shell=True,
            check=True,
            text=True,
            errors="replace",
            capture_output=True,
            timeout=timeout_sec or DEFAULT_PROBE_TIMEOUT_SEC,
        )
    except (OSError, ValueError, subprocess.SubprocessError):
        return fallback_info()
    out = (res.stdout or "").strip()
    return out or fallback_info()
