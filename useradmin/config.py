"""Configuration management for the user administration console."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass, replace
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

DEFAULT_API_BASE_URL = "https://reqres.in/api"
DEFAULT_PAGE_SIZE = 6
DEFAULT_REDIRECT_DELAY = 1.5

_ENV_PREFIX = "USERADMIN_"


def _parse_bool(value: object, *, field: str) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {field}: {value!r}")


def _parse_verify_setting(value: object) -> str | bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"", "default", "1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return str(Path(str(value)).expanduser())


def _parse_number(value: object, *, field: str) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid numeric value for {field}: {value!r}") from exc
    if not math.isfinite(number):
        raise ValueError(f"{field} must be a finite number")
    return number


def _parse_positive_number(value: object, *, field: str) -> float:
    number = _parse_number(value, field=field)
    if number <= 0:
        raise ValueError(f"{field} must be greater than zero")
    return number


@dataclass(frozen=True)
class AdminConfig:
    """Settings shared by the web interface and the command-line tools."""

    api_base_url: str = DEFAULT_API_BASE_URL
    api_key: Optional[str] = None
    api_timeout: float = 10.0
    api_verify: str | bool = True
    session_secret: Optional[str] = None
    session_secure: bool = False
    page_size: int = DEFAULT_PAGE_SIZE
    token_ttl: Optional[timedelta] = None
    redirect_delay: float = DEFAULT_REDIRECT_DELAY

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "AdminConfig":
        """Create an :class:`AdminConfig` from raw dictionary data."""
        unknown = set(data.keys()) - set(AdminConfig.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        values: Dict[str, object] = {}
        if data.get("api_base_url") is not None:
            base_url = str(data["api_base_url"]).strip().rstrip("/")
            if not base_url:
                raise ValueError("api_base_url must not be empty")
            values["api_base_url"] = base_url
        if data.get("api_key") is not None:
            values["api_key"] = str(data["api_key"]).strip() or None
        if data.get("api_timeout") is not None:
            values["api_timeout"] = _parse_positive_number(data["api_timeout"], field="api_timeout")
        if data.get("api_verify") is not None:
            values["api_verify"] = _parse_verify_setting(data["api_verify"])
        if data.get("session_secret") is not None:
            values["session_secret"] = str(data["session_secret"]) or None
        if data.get("session_secure") is not None:
            values["session_secure"] = _parse_bool(data["session_secure"], field="session_secure")
        if data.get("page_size") is not None:
            try:
                page_size = int(data["page_size"])  # type: ignore[arg-type]
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Invalid page_size: {data['page_size']!r}") from exc
            if page_size < 1:
                raise ValueError("page_size must be at least 1")
            values["page_size"] = page_size
        raw_ttl = data.get("token_ttl")
        if isinstance(raw_ttl, timedelta):
            values["token_ttl"] = raw_ttl
        elif raw_ttl is not None and str(raw_ttl).strip():
            seconds = _parse_positive_number(raw_ttl, field="token_ttl")
            try:
                values["token_ttl"] = timedelta(seconds=seconds)
            except OverflowError as exc:
                raise ValueError(f"token_ttl is too large: {raw_ttl!r}") from exc
        if data.get("redirect_delay") is not None:
            delay = _parse_number(data["redirect_delay"], field="redirect_delay")
            if delay < 0:
                raise ValueError("redirect_delay must not be negative")
            values["redirect_delay"] = delay

        return AdminConfig(**values)  # type: ignore[arg-type]

    def with_overrides(self, **changes: object) -> "AdminConfig":
        return replace(self, **changes)


def _read_yaml(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping of settings")
    return raw


def load_config(config_path: Path) -> AdminConfig:
    """Load settings from a YAML file."""
    return AdminConfig.from_dict(_read_yaml(config_path))


def resolve_config_path(env_value: Optional[str]) -> Optional[Path]:
    """Resolve the path to the optional configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    candidate = (Path(__file__).resolve().parent.parent / "config" / "useradmin.yaml").resolve(strict=False)
    if candidate.exists():
        return candidate
    return None


def _env_settings(environ: Mapping[str, str]) -> Dict[str, object]:
    settings: Dict[str, object] = {}
    for field in AdminConfig.__dataclass_fields__:
        raw = environ.get(_ENV_PREFIX + field.upper())
        if raw is not None:
            settings[field] = raw
    return settings


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> AdminConfig:
    """Build settings from an optional YAML file overlaid with ``USERADMIN_*`` variables."""

    if environ is None:
        environ = os.environ

    data: Dict[str, object] = {}
    config_path = resolve_config_path(environ.get(_ENV_PREFIX + "CONFIG"))
    if config_path is not None:
        data.update(_read_yaml(config_path))

    data.update(_env_settings(environ))
    return AdminConfig.from_dict(data)


__all__ = [
    "AdminConfig",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_REDIRECT_DELAY",
    "config_from_env",
    "load_config",
    "resolve_config_path",
]
