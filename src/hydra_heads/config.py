"""Environment-driven configuration for the Hydra coordination core.

Settings are read from ``HYDRA_*`` environment variables and validated with
a Pydantic model.

Example:
    >>> settings = load_settings({"HYDRA_HOME": "/tmp/hydra"})
    >>> settings.registry_file.name
    'map'
    >>> settings.limit_enabled
    False
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import paths
from .io import die

_NUMERIC_FIELDS = {
    "max_sessions",
    "pr_cache_ttl",
    "lock_stale_seconds",
    "message_retention_days",
}
ENV_FIELDS = {
    "HYDRA_HOME": "home",
    "HYDRA_MAP": "map_path",
    "HYDRA_MAX_SESSIONS": "max_sessions",
    "HYDRA_PR_CACHE_TTL": "pr_cache_ttl",
    "HYDRA_AI_COMMAND": "ai_command",
    "HYDRA_SKIP_AI": "skip_ai",
    "HYDRA_LOCK_STALE_SECONDS": "lock_stale_seconds",
    "HYDRA_MESSAGE_RETENTION_DAYS": "message_retention_days",
}
_TRUTHY = {"1", "true", "yes", "on"}


class HydraSettings(BaseModel):
    """Runtime settings for one Hydra invocation.

    Attributes:
        home: Root directory for the registry, locks, queue, and mailboxes.
        map_path: Registry file override; defaults to ``<home>/map``.
        max_sessions: Concurrent head ceiling (0 = unlimited).
        pr_cache_ttl: Seconds a cached PR status stays valid.
        ai_command: Command started in a new head when none is given.
        skip_ai: Do not start any AI command in new heads.
        lock_stale_seconds: Age after which a lock counts as abandoned.
        message_retention_days: Archive retention window for mailboxes.

    Example:
        >>> HydraSettings(home=Path("/tmp/hydra"), max_sessions=3).limit_enabled
        True
    """

    model_config = ConfigDict(frozen=True)

    home: Path = Field(default_factory=lambda: paths.default_home())
    map_path: Path | None = None
    max_sessions: int = Field(default=0, ge=0)
    pr_cache_ttl: int = Field(default=300, ge=0)
    ai_command: str = "claude"
    skip_ai: bool = False
    lock_stale_seconds: float = Field(default=60.0, gt=0)
    message_retention_days: float = Field(default=7.0, ge=0)

    @field_validator("home", mode="before")
    @classmethod
    def expand_home(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return paths.default_home()
        if isinstance(value, str):
            return Path(value.strip()).expanduser()
        return value

    @field_validator("map_path", mode="before")
    @classmethod
    def expand_map_path(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return Path(stripped).expanduser() if stripped else None
        return value

    @field_validator("ai_command", mode="before")
    @classmethod
    def normalize_ai_command(cls, value: object) -> object:
        if value is None:
            return "claude"
        if isinstance(value, str):
            return value.strip() or "claude"
        return value

    @field_validator("skip_ai", mode="before")
    @classmethod
    def parse_flag(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower() in _TRUTHY
        return value

    @field_validator(
        "max_sessions",
        "pr_cache_ttl",
        "lock_stale_seconds",
        "message_retention_days",
        mode="before",
    )
    @classmethod
    def strip_numbers(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @property
    def registry_file(self) -> Path:
        return self.map_path or paths.registry_path(self.home)

    @property
    def limit_enabled(self) -> bool:
        return self.max_sessions > 0


def _env_payload(environ: Mapping[str, str]) -> dict[str, object]:
    payload: dict[str, object] = {}
    for env_name, field_name in ENV_FIELDS.items():
        raw = environ.get(env_name)
        if raw is None:
            continue
        if field_name in _NUMERIC_FIELDS and not raw.strip():
            continue
        payload[field_name] = raw
    return payload


def load_settings(environ: Mapping[str, str] | None = None) -> HydraSettings:
    """Build settings from ``HYDRA_*`` environment variables.

    Args:
        environ: Mapping to read instead of ``os.environ``.

    Returns:
        Validated settings.
    """
    source = os.environ if environ is None else environ
    try:
        return HydraSettings.model_validate(_env_payload(source))
    except ValidationError as exc:
        names = {field: env for env, field in ENV_FIELDS.items()}
        offenders = sorted(
            {
                names.get(str(error["loc"][0]), str(error["loc"][0]))
                for error in exc.errors()
                if error.get("loc")
            }
        )
        die(f"invalid hydra settings ({', '.join(offenders)}):\n{exc}")
        raise  # pragma: no cover - die exits
