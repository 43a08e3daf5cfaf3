"""
Configuration management and loading.

Reads the YAML settings for the model gateway, rate limits and usage
storage. Credentials are never read from this file; the OpenAI SDK takes
them from OPENAI_API_KEY.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from case_critique.core.rate_limiter import DEFAULT_EDGE_LIMIT, DEFAULT_EDGE_WINDOW_SECONDS
from case_critique.core.usage_ledger import DEFAULT_REQUESTS_PER_MINUTE
from case_critique.sdk.openai_client import (
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT_SECONDS,
)
from case_critique.storage.db import DEFAULT_DB_PATH


class StorageBackend(Enum):
    """Where usage records are kept."""
    MEMORY = "memory"
    SQLITE = "sqlite"


@dataclass(frozen=True)
class LLMConfig:
    """Model gateway settings."""
    model: str = DEFAULT_MODEL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = DEFAULT_MAX_OUTPUT_TOKENS

    def __post_init__(self):
        """Validate gateway values."""
        if not self.model or not self.model.strip():
            raise ValueError("llm.model cannot be empty")
        if self.timeout_seconds <= 0:
            raise ValueError("llm.timeout_seconds must be > 0")
        if self.temperature is not None and not 0 <= self.temperature <= 2:
            raise ValueError("llm.temperature must be between 0 and 2")
        if self.max_output_tokens is not None and self.max_output_tokens <= 0:
            raise ValueError("llm.max_output_tokens must be > 0")


@dataclass(frozen=True)
class LimitsConfig:
    """Per-identity quota and per-address edge limits."""
    requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE
    edge_requests_per_minute: int = DEFAULT_EDGE_LIMIT
    edge_window_seconds: float = DEFAULT_EDGE_WINDOW_SECONDS

    def __post_init__(self):
        """Validate limits are positive."""
        if self.requests_per_minute <= 0:
            raise ValueError("limits.requests_per_minute must be > 0")
        if self.edge_requests_per_minute <= 0:
            raise ValueError("limits.edge_requests_per_minute must be > 0")
        if self.edge_window_seconds <= 0:
            raise ValueError("limits.edge_window_seconds must be > 0")

    @property
    def requests_per_day(self) -> int:
        """Daily ceiling, derived from the minute ceiling."""
        return self.requests_per_minute * 24


@dataclass(frozen=True)
class StorageConfig:
    """Usage record storage settings."""
    backend: StorageBackend = StorageBackend.MEMORY
    db_path: str = DEFAULT_DB_PATH


@dataclass(frozen=True)
class CritiqueConfig:
    """Complete analyzer configuration."""
    llm: LLMConfig = field(default_factory=LLMConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def default_config() -> CritiqueConfig:
    """Configuration used when no file is given."""
    return CritiqueConfig()


def load_config(path: str) -> CritiqueConfig:
    """Load and validate analyzer configuration from a YAML file.

    Every section is optional and falls back to defaults, but unknown keys
    and wrongly typed values are rejected.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated CritiqueConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return default_config()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'llm', 'limits', 'storage'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    return CritiqueConfig(
        llm=_parse_llm(_section(raw_config, 'llm')),
        limits=_parse_limits(_section(raw_config, 'limits')),
        storage=_parse_storage(_section(raw_config, 'storage')),
    )


def _section(raw_config: Dict, name: str) -> Dict:
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def _check_keys(data: Dict, allowed: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _number(data: Dict, key: str, path: str, integer: bool = False) -> Any:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' in {path} must be a number")
    if integer and not isinstance(value, int):
        raise ValueError(f"'{key}' in {path} must be an integer")
    return value


def _parse_llm(data: Dict) -> LLMConfig:
    """Parse and validate the llm section.

    Raises:
        ValueError: If configuration is invalid
    """
    _check_keys(data, {'model', 'timeout_seconds', 'temperature', 'max_output_tokens'}, "llm")
    defaults = LLMConfig()

    model = data.get('model', defaults.model)
    if not isinstance(model, str):
        raise ValueError("'model' in llm must be a string")

    timeout_seconds = defaults.timeout_seconds
    if 'timeout_seconds' in data:
        timeout_seconds = float(_number(data, 'timeout_seconds', "llm"))

    temperature = None
    if data.get('temperature') is not None:
        temperature = float(_number(data, 'temperature', "llm"))

    # An explicit null lifts the output cap
    max_output_tokens = defaults.max_output_tokens
    if 'max_output_tokens' in data:
        max_output_tokens = None
        if data['max_output_tokens'] is not None:
            max_output_tokens = _number(data, 'max_output_tokens', "llm", integer=True)

    return LLMConfig(
        model=model,
        timeout_seconds=timeout_seconds,
        temperature=temperature,
        max_output_tokens=max_output_tokens,
    )


def _parse_limits(data: Dict) -> LimitsConfig:
    """Parse and validate the limits section.

    Raises:
        ValueError: If configuration is invalid
    """
    _check_keys(
        data,
        {'requests_per_minute', 'edge_requests_per_minute', 'edge_window_seconds'},
        "limits"
    )
    defaults = LimitsConfig()
    return LimitsConfig(
        requests_per_minute=_number(data, 'requests_per_minute', "limits", integer=True)
        if 'requests_per_minute' in data else defaults.requests_per_minute,
        edge_requests_per_minute=_number(data, 'edge_requests_per_minute', "limits", integer=True)
        if 'edge_requests_per_minute' in data else defaults.edge_requests_per_minute,
        edge_window_seconds=float(_number(data, 'edge_window_seconds', "limits"))
        if 'edge_window_seconds' in data else defaults.edge_window_seconds,
    )


def _parse_storage(data: Dict) -> StorageConfig:
    """Parse and validate the storage section.

    Raises:
        ValueError: If configuration is invalid
    """
    _check_keys(data, {'backend', 'db_path'}, "storage")
    defaults = StorageConfig()

    backend_str = data.get('backend', defaults.backend.value)
    if not isinstance(backend_str, str):
        raise ValueError("'backend' in storage must be a string")
    try:
        backend = StorageBackend(backend_str.lower())
    except ValueError:
        valid_backends = [backend.value for backend in StorageBackend]
        raise ValueError(f"'backend' in storage must be one of: {valid_backends}")

    db_path = data.get('db_path', defaults.db_path)
    if not isinstance(db_path, str) or not db_path.strip():
        raise ValueError("'db_path' in storage must be a non-empty string")

    return StorageConfig(backend=backend, db_path=db_path)
