from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


ENV_PREFIX = "CHESSCORE_"


def _env_str(env: Mapping[str, str], key: str, default: str) -> str:
    val = env.get(ENV_PREFIX + key)
    return val if val is not None else default


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    val = _env_opt_int(env, key)
    return default if val is None else val


def _env_opt_int(env: Mapping[str, str], key: str) -> Optional[int]:
    """Get an integer from the environment; empty string means unset."""
    val = env.get(ENV_PREFIX + key)
    if val is None or val.strip() == "":
        return None
    try:
        return int(val)
    except ValueError as e:
        raise ValueError(f"{ENV_PREFIX + key} must be an integer, got {val!r}") from e


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service and the AI driver."""

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    # Default search depth for AI moves and /search without an explicit depth
    ai_depth: int = 3
    # Upper bound on the depth a client may request
    max_depth: int = 6
    ai_movetime_ms: Optional[int] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        defaults = cls()
        settings = cls(
            host=_env_str(env, "HOST", defaults.host),
            port=_env_int(env, "PORT", defaults.port),
            log_level=_env_str(env, "LOG_LEVEL", defaults.log_level).upper(),
            ai_depth=_env_int(env, "AI_DEPTH", defaults.ai_depth),
            max_depth=_env_int(env, "MAX_DEPTH", defaults.max_depth),
            ai_movetime_ms=_env_opt_int(env, "AI_MOVETIME_MS"),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.ai_depth < 1:
            raise ValueError("ai_depth must be >= 1")
        if self.max_depth < self.ai_depth:
            raise ValueError("max_depth must be >= ai_depth")
        if self.ai_movetime_ms is not None and self.ai_movetime_ms < 1:
            raise ValueError("ai_movetime_ms must be >= 1")
        if not (0 < self.port < 65536):
            raise ValueError("port must be in 1..65535")
