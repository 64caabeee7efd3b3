"""Configuration management for the user directory service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

from .database import resolve_database_path
from .passwords import DEFAULT_BCRYPT_ROUNDS


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the service."""

    database_path: Path
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS
    api_tokens: Tuple[str, ...] = field(default_factory=tuple)

    @staticmethod
    def from_dict(data: Dict[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from the raw contents of a config file."""

        raw_db_path = data.get("database_path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        tokens_raw = data.get("api_tokens") or []
        if isinstance(tokens_raw, str):
            tokens_raw = tokens_raw.split(",")
        if not isinstance(tokens_raw, list):
            raise ValueError("api_tokens must be a list of strings")

        return Settings(
            database_path=database_path,
            bcrypt_rounds=_parse_rounds(data.get("bcrypt_rounds", DEFAULT_BCRYPT_ROUNDS)),
            api_tokens=_clean_tokens(tokens_raw),
        )


def _parse_rounds(value: object) -> int:
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"bcrypt_rounds must be an integer, got {value!r}") from exc


def _clean_tokens(values) -> Tuple[str, ...]:
    return tuple(str(token).strip() for token in values if str(token).strip())


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "userdir.yaml").resolve(strict=False)


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from YAML, then apply ``USERDIR_*`` environment overrides.

    A missing config file is not an error; defaults are used instead.
    """

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("USERDIR_CONFIG"))

    raw: Dict[str, object] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        raw = loaded

    if env.get("USERDIR_DB_PATH"):
        raw["database_path"] = str(resolve_database_path(env["USERDIR_DB_PATH"]))
    if env.get("USERDIR_BCRYPT_ROUNDS"):
        raw["bcrypt_rounds"] = env["USERDIR_BCRYPT_ROUNDS"]
    if env.get("USERDIR_API_TOKENS"):
        raw["api_tokens"] = env["USERDIR_API_TOKENS"]

    return Settings.from_dict(raw, base_path=path.parent)


__all__ = ["Settings", "load_settings", "resolve_config_path"]
