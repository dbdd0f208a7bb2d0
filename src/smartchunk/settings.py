"""
Centralized application settings.

Values come from ``SMARTCHUNK_*`` environment variables and an optional TOML
file; the CLI overrides individual fields per run.
"""
from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


def _default_workers() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


class AppSettings(BaseSettings):
    """Project-wide settings loaded from env or .env files."""

    model_config = SettingsConfigDict(
        env_prefix="SMARTCHUNK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    root_path: Path = Path(".")
    output_path: Path = Path("output.jsonl")
    max_chunk_tokens: int = 800
    tokenizer_encoding: str = "cl100k_base"
    tolerate_syntax_errors: bool = False
    workers: int = _default_workers()
    ignore_patterns: List[str] = []
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def normalise_log_level(cls, value: str) -> str:
        return value.strip().upper()


_CONFIG_ENV_VAR = "SMARTCHUNK_CONFIG_PATH"
_DEFAULT_CONFIG_FILE = Path("smartchunk.toml")


def _load_toml_config() -> Dict[str, Any]:
    """Load configuration from the primary TOML file on disk."""
    candidates: List[Path] = []
    config_override = os.getenv(_CONFIG_ENV_VAR)
    if config_override:
        candidates.append(Path(config_override))
    candidates.append(_DEFAULT_CONFIG_FILE)

    for candidate in candidates:
        if candidate.is_file():
            with candidate.open("rb") as handle:
                return tomllib.load(handle)
    return {}


def _flatten_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Translate grouped TOML sections into AppSettings keyword arguments."""
    data: Dict[str, Any] = {}

    run = raw.get("run", {})
    if "root" in run:
        data["root_path"] = run["root"]
    if "output" in run:
        data["output_path"] = run["output"]
    if "workers" in run:
        data["workers"] = int(run["workers"])
    if "ignore" in run:
        data["ignore_patterns"] = [str(item) for item in run["ignore"]]

    chunking = raw.get("chunking", {})
    if "max_tokens" in chunking:
        data["max_chunk_tokens"] = int(chunking["max_tokens"])
    if "encoding" in chunking:
        data["tokenizer_encoding"] = chunking["encoding"]
    if "tolerate_syntax_errors" in chunking:
        data["tolerate_syntax_errors"] = bool(chunking["tolerate_syntax_errors"])

    logging_section = raw.get("logging", {})
    if "level" in logging_section:
        data["log_level"] = str(logging_section["level"]).upper()

    return data


def validate_run_config(
    root_path: Optional[Path],
    max_chunk_tokens: int,
    workers: int,
) -> None:
    """Reject configurations that must abort a run before dispatch."""
    if max_chunk_tokens <= 0:
        raise ConfigurationError(
            f"max_chunk_tokens must be a positive integer, got {max_chunk_tokens}"
        )
    if workers <= 0:
        raise ConfigurationError(f"workers must be a positive integer, got {workers}")
    if root_path is not None and not root_path.is_dir():
        raise ConfigurationError(f"Root path is not a directory: {root_path}")


def load_settings() -> AppSettings:
    raw = _load_toml_config()
    flattened = _flatten_config(raw)
    return AppSettings(**flattened)


settings = load_settings()
