"""Shared configuration loader for coinlens."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".coinlens.yaml"
# AGG_SIG_ME additional data for mainnet.
MAINNET_GENESIS_CHALLENGE = "ccd5bb71183532bff220ba46c268991a3ff07eb358e8255a65c30a2dce0e5fbb"
EXECUTOR_KINDS = ("brun", "http")


@dataclass
class CoinlensConfig:
    """Settings for template loading, puzzle execution, and signing."""

    templates: Path | None = None
    executor: str = "brun"
    brun_path: str = "brun"
    executor_url: str | None = None
    timeout_seconds: float = 30.0
    max_workers: int = 8
    genesis_challenge: str = MAINNET_GENESIS_CHALLENGE

    @property
    def genesis_challenge_bytes(self) -> bytes:
        return bytes.fromhex(self.genesis_challenge)


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML object with a 'coinlens' section")
    return loaded


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _coerce_positive(raw: Any, *, name: str, cast: type) -> Any:
    if raw is None:
        return None
    try:
        value = cast(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {name}: {raw}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw}")
    return value


def _validate_url(raw: str | None) -> str | None:
    if not raw:
        return None
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid executor URL: {raw}")
    return raw


def _validate_challenge(raw: str) -> str:
    value = raw[2:] if raw.startswith("0x") else raw
    try:
        decoded = bytes.fromhex(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid genesis challenge: {raw}") from exc
    if len(decoded) != 32:
        raise ConfigurationError("genesis_challenge must be 32 bytes of hex")
    return value.lower()


def load_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> CoinlensConfig:
    """Load settings from overrides, ``COINLENS_*`` variables, and optional YAML."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None
    path = Path(config_path).expanduser() if explicit_path else DEFAULT_CONFIG_PATH

    file_config = _load_config_file(path, required=explicit_path)
    section = file_config.get("coinlens", {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected 'coinlens' to be a mapping in {path}")

    override_map = {key: value for key, value in (overrides or {}).items() if value is not None}

    def pick(key: str, env_key: str) -> Any:
        return _first_value(override_map.get(key), env_map.get(env_key), section.get(key))

    templates = pick("templates", "COINLENS_TEMPLATES")
    executor = str(_first_value(pick("executor", "COINLENS_EXECUTOR"), default="brun")).lower()
    if executor not in EXECUTOR_KINDS:
        raise ConfigurationError(
            f"Unknown executor {executor!r}; expected one of {', '.join(EXECUTOR_KINDS)}"
        )
    executor_url = _validate_url(pick("executor_url", "COINLENS_EXECUTOR_URL"))
    if executor == "http" and not executor_url:
        raise ConfigurationError("executor_url (COINLENS_EXECUTOR_URL) is required for the http executor")

    return CoinlensConfig(
        templates=Path(str(templates)).expanduser() if templates else None,
        executor=executor,
        brun_path=str(_first_value(pick("brun_path", "COINLENS_BRUN_PATH"), default="brun")),
        executor_url=executor_url,
        timeout_seconds=_first_value(
            _coerce_positive(pick("timeout_seconds", "COINLENS_TIMEOUT"), name="timeout_seconds", cast=float),
            default=30.0,
        ),
        max_workers=_first_value(
            _coerce_positive(pick("max_workers", "COINLENS_MAX_WORKERS"), name="max_workers", cast=int),
            default=8,
        ),
        genesis_challenge=_validate_challenge(
            str(
                _first_value(
                    pick("genesis_challenge", "COINLENS_GENESIS_CHALLENGE"),
                    default=MAINNET_GENESIS_CHALLENGE,
                )
            )
        ),
    )
