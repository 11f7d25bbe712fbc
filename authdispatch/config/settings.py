"""Dispatch runtime configuration loading and validation."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar, Dict, Iterable, Literal

import yaml
from pydantic import Field, PositiveFloat, PositiveInt
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_LOCATIONS: tuple[Path, ...] = (
    Path("/etc/authdispatch/config.yaml"),
    Path("/etc/authdispatch/config.yml"),
    Path("./config/authdispatch.yaml"),
    Path("./config/authdispatch.yml"),
)


def _default_max_workers() -> int:
    return min(32, (os.cpu_count() or 1) * 4)


class DispatchSettings(BaseSettings):
    """Validated settings for the dispatch runtime."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="AUTHDISPATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Account identity
    account_id: str | None = Field(
        default=None,
        description="Account identifier applied to the session at startup.",
    )
    account_secret: str | None = Field(
        default=None,
        description="Secret paired with account_id for the credential exchange.",
        repr=False,
    )

    # Credential exchange
    authorize_url: str = Field(
        default="https://api.backblazeb2.com",
        description="Base URL of the authorize endpoint used by the basic-auth exchange.",
    )
    api_group: str = Field(
        default="b2api",
        description="API group label inserted into every request URL.",
    )
    api_version: str = Field(
        default="v1",
        description="Protocol version of the authorize operation.",
    )
    authorize_operation: str = Field(
        default="b2_authorize_account",
        description="Operation name of the authorize call.",
    )

    # Token renewal
    token_validity_seconds: PositiveFloat = Field(
        default=86400.0,
        description="Token lifetime assumed when the exchange does not report one.",
    )
    renewal_margin_seconds: float = Field(
        default=600.0,
        ge=0,
        description="Re-authenticate this many seconds before the token expires.",
    )
    renewal_min_delay_seconds: PositiveFloat = Field(
        default=1.0,
        description="Lower bound on the renewal delay when validity is shorter than the margin.",
    )

    # Dispatch pool
    dispatch_max_workers: PositiveInt = Field(
        default_factory=_default_max_workers,
        description="Maximum number of concurrent transport calls.",
    )
    dispatch_thread_prefix: str = Field(
        default="dispatch",
        description="Thread name prefix for dispatcher workers.",
    )

    # Transport
    transport_timeout_seconds: PositiveFloat | None = Field(
        default=None,
        description="Per-call timeout handed to the HTTP transport; None leaves it unbounded.",
    )
    download_chunk_bytes: PositiveInt = Field(
        default=1024 * 1024,
        description="Chunk size used when streaming downloads to disk.",
    )
    user_agent: str = Field(
        default="authdispatch/0.1.0",
        description="User-Agent header sent by the HTTP transport.",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level for the process.",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.upper()
        return value

    config_path: Path | None = Field(
        default=None,
        description="Resolved path to the on-disk config that seeded the settings.",
        exclude=True,
    )

    def has_account(self) -> bool:
        return bool(self.account_id and self.account_secret)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[DispatchSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._file_settings_source,
            file_secret_settings,
        )

    @staticmethod
    def _file_settings_source(settings_cls: type[DispatchSettings] | None = None) -> Dict[str, Any]:
        for path in DispatchSettings._resolve_candidate_paths():
            data = DispatchSettings._load_file(path)
            if data is not None:
                data.setdefault("config_path", path)
                return data
        return {}

    @staticmethod
    def _resolve_candidate_paths() -> Iterable[Path]:
        explicit = os.getenv("AUTHDISPATCH_CONFIG_FILE")
        if explicit:
            yield Path(explicit).expanduser()
        yield from DEFAULT_CONFIG_LOCATIONS

    @staticmethod
    def _load_file(path: Path) -> Dict[str, Any] | None:
        if not path.is_file():
            return None
        suffix = path.suffix.lower()
        try:
            with path.open("r", encoding="utf-8") as handle:
                if suffix in {".yaml", ".yml"}:
                    raw = yaml.safe_load(handle)
                elif suffix == ".json":
                    raw = json.load(handle)
                else:
                    return None
        except OSError as exc:
            raise RuntimeError(f"Failed to read config file {path}") from exc
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ValueError(f"Invalid config file {path}") from exc

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config file {path} must contain a mapping at top level.")
        return raw


@lru_cache()
def get_settings() -> DispatchSettings:
    """Return memoized dispatch settings."""

    return DispatchSettings()
