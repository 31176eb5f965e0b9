"""Layered configuration loader for SmartLocal."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Sequence

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .catalog import DEFAULT_MAX_ASSET_BYTES, DEFAULT_MAX_CATALOG_ENTRIES
from .errors import ConfigurationError

APP_NAME = "smartlocal"
CONFIG_FILE_NAME = "config.yaml"


class SmartLocalConfig(BaseModel):
    """Schema describing all supported configuration options."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    LLM_PROVIDER: Literal["openai", "echo"] = Field(
        default="openai",
        description="Translation provider used by the translate command.",
    )
    OPENAI_API_KEY: str | None = Field(default=None, repr=False)
    SMARTLOCAL_MODEL: str | None = Field(default=None)
    SMARTLOCAL_PROVIDER_DEBUG: bool = Field(default=False)
    SMARTLOCAL_CLONE_SPACING: float = Field(default=40.0, ge=0)
    SMARTLOCAL_MAX_ASSET_BYTES: int = Field(default=DEFAULT_MAX_ASSET_BYTES, gt=0)
    SMARTLOCAL_MAX_CATALOG_ENTRIES: int = Field(default=DEFAULT_MAX_CATALOG_ENTRIES, gt=0)
    SMARTLOCAL_LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @model_validator(mode="before")
    @classmethod
    def _normalise_values(cls, data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("LLM_PROVIDER")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower().replace("-", "_")
                synonyms = {
                    "gpt": "openai",
                    "open_ai": "openai",
                    "default": "openai",
                    "noop": "echo",
                    "mock": "echo",
                }
                data["LLM_PROVIDER"] = synonyms.get(normalized, normalized)
            level = data.get("SMARTLOCAL_LOG_LEVEL")
            if isinstance(level, str):
                data["SMARTLOCAL_LOG_LEVEL"] = level.strip().upper()
        return data


def _config_file_paths(app_dir: Path) -> list[Path]:
    """Home configuration first, then the working directory's."""

    return [
        Path.home() / ".config" / APP_NAME / CONFIG_FILE_NAME,
        app_dir / CONFIG_FILE_NAME,
    ]


def _load_yaml_layers(app_dir: Path) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for path in _config_file_paths(app_dir):
        if not path.is_file():
            continue
        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Configuration file {path} could not be read: {exc}") from exc
        if parsed is None:
            continue
        if not isinstance(parsed, Mapping):
            raise ConfigurationError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        result.update(parsed)
    return result


def _merge_env_sources(target: Dict[str, Any], *, app_dir: Path) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(SmartLocalConfig.model_fields.keys())

    def merge_values(values: Mapping[str, str | None]) -> None:
        for key, value in sorted(values.items()):
            if value is None or key not in allowed:
                continue
            target[key] = value

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        merge_values(dotenv_values(dotenv_path))

    merge_values(dict(os.environ))


def _format_validation_errors(entries: Sequence[Mapping[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        location = ".".join(str(part) for part in entry.get("loc") or () if part not in {None, ""})
        message = str(entry.get("msg") or "Invalid value")
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


@lru_cache(maxsize=4)
def _load_settings(app_dir: Path) -> SmartLocalConfig:
    combined = _load_yaml_layers(app_dir)
    _merge_env_sources(combined, app_dir=app_dir)
    try:
        return SmartLocalConfig.model_validate(combined)
    except ValidationError as exc:
        raise ConfigurationError(_format_validation_errors(exc.errors())) from exc


def get_settings(app_dir: Path | None = None) -> SmartLocalConfig:
    """Return the validated settings, loaded once per directory."""

    return _load_settings((app_dir or Path.cwd()).resolve())


def clear_settings_cache() -> None:
    _load_settings.cache_clear()
