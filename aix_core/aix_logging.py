# aix_core/aix_logging.py
from __future__ import annotations

import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

# provider keys and auth headers never reach disk
SECRETS = (
    re.compile(r"\bsk-[A-Za-z0-9_\-]{20,}"),      # moonshot / deepseek / openrouter
    re.compile(r"\bgsk_[A-Za-z0-9]{20,}"),        # groq
    re.compile(r"(?i)\bapi[_-]?key\s*[:=]\s*[^\s\"']+"),
    re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._\-]+"),
)
MASK = "***"
PREVIEW_LIMIT = 4096


def default_log_dir() -> Path:
    override = os.environ.get("AIX_LOG_DIR")
    return Path(override).expanduser() if override else Path.home() / ".aix" / "logs"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def redact(value: Any) -> Any:
    """Mask secrets in strings, recursively through dicts and sequences."""
    if isinstance(value, bytes):
        value = value.decode("utf-8", "replace")
    if isinstance(value, str):
        for rx in SECRETS:
            value = rx.sub(MASK, value)
        return value
    if isinstance(value, Mapping):
        return {k: redact(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


def preview(text: Optional[str], limit: int = PREVIEW_LIMIT) -> str:
    """Trim stdout/stderr so a noisy command does not bloat the log."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}\n...[truncated {len(text) - limit} chars]"


class JsonlLogger:
    """
    Append-only event log: one JSON object per line, one file per UTC day
    (<dir>/YYYY-MM-DD.jsonl). The directory is created on first write.
    """

    def __init__(self, dirpath: Path | str | None = None):
        self._dir = Path(dirpath) if dirpath else None

    @property
    def dir(self) -> Path:
        return self._dir or default_log_dir()

    def path_for(self, ts: str) -> Path:
        return self.dir / f"{ts[:10]}.jsonl"

    def write(self, event: Dict[str, Any]) -> None:
        record = redact({"ts": utc_timestamp(), **event})
        path = self.path_for(record["ts"])
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")


logger = JsonlLogger()
