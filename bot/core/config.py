from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

CLOSE_POLICIES = ("claimer_or_admin", "claim_required", "anyone")
TRANSCRIPT_FORMATS = ("txt", "html")

DEFAULT_EXTENSIONS = [
    "cogs.events",
    "cogs.tickets",
    "cogs.admin",
]


class ConfigError(RuntimeError):
    pass


@dataclass(slots=True)
class DiscordConfig:
    token: str
    application_id: int | None = None
    guild_id: int | None = None
    sync_commands_on_start: bool = True
    status_text: str = "Support tickets"
    activity_type: str = "watching"


@dataclass(slots=True)
class DatabaseConfig:
    url: str = "json:///./data"


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    directory: str = "logs"
    file_name: str = "bot.log"
    max_bytes: int = 10_000_000
    backup_count: int = 10
    json_console: bool = False


@dataclass(slots=True)
class TicketPolicyConfig:
    staff_role_ids: list[int] = field(default_factory=list)
    close_policy: str = "claimer_or_admin"
    deletion_grace_seconds: float = 5.0
    history_limit: int = 100
    brand_name: str = "Support"
    dm_transcript_to_opener: bool = True


@dataclass(slots=True)
class TranscriptConfig:
    format: str = "txt"
    storage_directory: str | None = None


@dataclass(slots=True)
class FastApiConfig:
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 3000
    liveness_text: str = "Ticket Bot Online"


@dataclass(slots=True)
class AppConfig:
    discord: DiscordConfig
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    tickets: TicketPolicyConfig = field(default_factory=TicketPolicyConfig)
    transcripts: TranscriptConfig = field(default_factory=TranscriptConfig)
    fastapi: FastApiConfig = field(default_factory=FastApiConfig)
    enabled_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))


def _get_env_str(key: str, fallback: str | None = None) -> str | None:
    value = os.getenv(key)
    if value is None:
        return fallback
    cleaned = value.strip()
    return cleaned if cleaned else fallback


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Expected an integer id, got {value!r}") from exc


def _as_float(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _deep_get(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    node: Any = data
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def _load_ticket_policy(raw: dict[str, Any]) -> TicketPolicyConfig:
    close_policy = str(
        _get_env_str("TICKET_CLOSE_POLICY", _deep_get(raw, "tickets", "close_policy", default="claimer_or_admin"))
    ).strip().lower()
    if close_policy not in CLOSE_POLICIES:
        raise ConfigError(f"Unknown close_policy {close_policy!r}. Use one of: {', '.join(CLOSE_POLICIES)}")

    grace = _as_float(_deep_get(raw, "tickets", "deletion_grace_seconds"), 5.0)
    if grace < 0:
        raise ConfigError("deletion_grace_seconds cannot be negative")

    return TicketPolicyConfig(
        staff_role_ids=[int(role_id) for role_id in list(_deep_get(raw, "tickets", "staff_role_ids", default=[]))],
        close_policy=close_policy,
        deletion_grace_seconds=grace,
        history_limit=max(1, _as_int(_deep_get(raw, "tickets", "history_limit"), 100)),
        brand_name=str(_deep_get(raw, "tickets", "brand_name", default="Support")),
        dm_transcript_to_opener=_as_bool(_deep_get(raw, "tickets", "dm_transcript_to_opener"), True),
    )


def load_config(config_path: Path) -> AppConfig:
    env_path = config_path.parent.parent / ".env"
    load_dotenv(env_path)
    raw = _load_yaml(config_path)

    discord_token = _get_env_str("DISCORD_TOKEN", _deep_get(raw, "discord", "token"))
    if not discord_token or "${" in discord_token:
        raise ConfigError("DISCORD_TOKEN is required")

    discord_cfg = DiscordConfig(
        token=discord_token,
        application_id=_as_optional_int(
            _get_env_str("DISCORD_APPLICATION_ID", _deep_get(raw, "discord", "application_id"))
        ),
        guild_id=_as_optional_int(_get_env_str("DISCORD_GUILD_ID", _deep_get(raw, "discord", "guild_id"))),
        sync_commands_on_start=_as_bool(
            _get_env_str("SYNC_COMMANDS"),
            _as_bool(_deep_get(raw, "discord", "sync_commands_on_start"), True),
        ),
        status_text=str(_deep_get(raw, "discord", "status_text", default="Support tickets")),
        activity_type=str(_deep_get(raw, "discord", "activity_type", default="watching")),
    )

    database_cfg = DatabaseConfig(
        url=str(_get_env_str("DATABASE_URL", _deep_get(raw, "database", "url", default="json:///./data"))),
    )

    logging_cfg = LoggingConfig(
        level=str(_get_env_str("LOG_LEVEL", _deep_get(raw, "logging", "level", default="INFO"))),
        directory=str(_deep_get(raw, "logging", "directory", default="logs")),
        file_name=str(_deep_get(raw, "logging", "file_name", default="bot.log")),
        max_bytes=_as_int(_deep_get(raw, "logging", "max_bytes"), 10_000_000),
        backup_count=_as_int(_deep_get(raw, "logging", "backup_count"), 10),
        json_console=_as_bool(_deep_get(raw, "logging", "json_console"), False),
    )

    transcript_format = str(_deep_get(raw, "transcripts", "format", default="txt")).strip().lower()
    if transcript_format not in TRANSCRIPT_FORMATS:
        raise ConfigError(f"Unknown transcript format {transcript_format!r}. Use txt or html.")
    storage_directory = _deep_get(raw, "transcripts", "storage_directory")
    transcript_cfg = TranscriptConfig(
        format=transcript_format,
        storage_directory=str(storage_directory) if storage_directory else None,
    )

    fastapi_cfg = FastApiConfig(
        enabled=_as_bool(_get_env_str("HEALTH_ENABLED"), _as_bool(_deep_get(raw, "fastapi", "enabled"), True)),
        host=str(_deep_get(raw, "fastapi", "host", default="0.0.0.0")),
        port=_as_int(_get_env_str("PORT"), _as_int(_deep_get(raw, "fastapi", "port"), 3000)),
        liveness_text=str(_deep_get(raw, "fastapi", "liveness_text", default="Ticket Bot Online")),
    )

    enabled_extensions = [
        str(ext) for ext in list(_deep_get(raw, "enabled_extensions", default=DEFAULT_EXTENSIONS))
    ]

    return AppConfig(
        discord=discord_cfg,
        database=database_cfg,
        logging=logging_cfg,
        tickets=_load_ticket_policy(raw),
        transcripts=transcript_cfg,
        fastapi=fastapi_cfg,
        enabled_extensions=enabled_extensions,
    )
