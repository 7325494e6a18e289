# aix_core/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

DEFAULT_CONFIG_PATH = os.path.expanduser("~/.aix/config.yml")

DEFAULT_PROVIDER = "moonshot"
DEFAULT_MODEL = "kimi-k2-0711-preview"
DEFAULT_TEMPERATURE = 0.6
DEFAULT_PROBE_TIMEOUT_SEC = 5.0


def _read_yaml(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data
    except FileNotFoundError:
        return {}
    except (OSError, yaml.YAMLError):
        # a broken user config must not stop the CLI
        return {}


def load_env() -> None:
    """Pick up .env from the current project directory, like a shell would."""
    load_dotenv(find_dotenv(usecwd=True))


def load_user_config(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> dict:
    env = os.environ if env is None else env
    return _read_yaml(path or env.get("AIX_CONFIG") or DEFAULT_CONFIG_PATH)


def _to_float(value: object, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else default
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default


@dataclass
class AppConfig:
    default_provider: str = DEFAULT_PROVIDER
    default_model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    probe_timeout_sec: float = DEFAULT_PROBE_TIMEOUT_SEC
    log_dir: Optional[str] = None
    limits: Dict[str, dict] = field(default_factory=dict)

    @classmethod
    def load(
        cls,
        path: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> "AppConfig":
        """
        Environment first, then ~/.aix/config.yml, then built-in defaults:
          AIX_DEFAULT_PROVIDER / default_provider
          AIX_DEFAULT_MODEL    / default_model
          AIX_LOG_DIR          / log_dir
        """
        env = os.environ if env is None else env
        data = load_user_config(path, env)
        probe = data.get("probe") if isinstance(data.get("probe"), dict) else {}
        limits = data.get("limits") if isinstance(data.get("limits"), dict) else {}
        log_dir = env.get("AIX_LOG_DIR") or (str(data["log_dir"]) if data.get("log_dir") else None)
        return cls(
            default_provider=(
                env.get("AIX_DEFAULT_PROVIDER")
                or str(data.get("default_provider") or DEFAULT_PROVIDER)
            ),
            default_model=(
                env.get("AIX_DEFAULT_MODEL")
                or str(data.get("default_model") or DEFAULT_MODEL)
            ),
            temperature=_to_float(data.get("temperature"), DEFAULT_TEMPERATURE),
            probe_timeout_sec=_to_float(probe.get("timeout_sec"), DEFAULT_PROBE_TIMEOUT_SEC),
            log_dir=os.path.expanduser(log_dir) if log_dir else None,
            limits={str(k): dict(v) for k, v in limits.items() if isinstance(v, dict)},
        )
