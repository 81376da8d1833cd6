"""Configuration for batch token operations.

TOML configuration with environment variable overrides and validation.
Settings live either at the top level of the file or in a ``[tokenbatch]``
table.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigError
from .operations import DEFAULT_MAX_TOKENS
from .tokenizer import DEFAULT_ENCODING

# Conditional TOML import: stdlib tomllib (3.11+) or fallback tomli (<3.11)
try:
    import tomllib  # Python 3.11+
except ImportError:
    try:
        import tomli as tomllib  # type: ignore
    except ImportError:
        tomllib = None  # type: ignore

logger = logging.getLogger(__name__)

ENV_PREFIX = "TOKENBATCH_"

DEFAULT_CONFIG: Dict[str, Any] = {
    "encoding": DEFAULT_ENCODING,
    "model": None,
    "max_tokens": DEFAULT_MAX_TOKENS,
    "destination_key": "",
    "error_token_limit": False,
    "continue_on_fail": False,
}

_TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass
class TokenBatchConfig:
    """Runtime settings with validation and defaults."""

    encoding: Optional[str] = DEFAULT_ENCODING
    model: Optional[str] = None
    max_tokens: int = DEFAULT_MAX_TOKENS
    destination_key: str = ""
    error_token_limit: bool = False
    continue_on_fail: bool = False

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Validate configuration values."""
        if self.encoding is not None and (not isinstance(self.encoding, str) or not self.encoding.strip()):
            raise ConfigError("encoding must be a non-empty string if specified")

        if self.model is not None and (not isinstance(self.model, str) or not self.model.strip()):
            raise ConfigError("model must be a non-empty string if specified")

        if self.encoding is None and self.model is None:
            raise ConfigError("Either encoding or model must be specified")

        if isinstance(self.max_tokens, bool) or not isinstance(self.max_tokens, int) or self.max_tokens <= 0:
            raise ConfigError("max_tokens must be a positive integer")

        if not isinstance(self.destination_key, str):
            raise ConfigError("destination_key must be a string")

        if not isinstance(self.error_token_limit, bool):
            raise ConfigError("error_token_limit must be a boolean")

        if not isinstance(self.continue_on_fail, bool):
            raise ConfigError("continue_on_fail must be a boolean")

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "encoding": self.encoding,
            "model": self.model,
            "max_tokens": self.max_tokens,
            "destination_key": self.destination_key,
            "error_token_limit": self.error_token_limit,
            "continue_on_fail": self.continue_on_fail,
        }
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenBatchConfig":
        unknown = set(data) - set(DEFAULT_CONFIG)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        merged = {**DEFAULT_CONFIG, **data}
        # A model without an explicit encoding selects the encoding itself.
        if data.get("model") and "encoding" not in data:
            merged["encoding"] = None
        return cls(**merged)


class TokenBatchConfigLoader:
    """Loader for configuration files with environment overrides."""

    @staticmethod
    def _read_toml_file(path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        if tomllib is None:
            raise ConfigError("TOML support not available; install tomli for Python <3.11")

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Failed to load TOML from {path}: {e}")

        if "tokenbatch" in data:
            data = data["tokenbatch"]
            if not isinstance(data, dict):
                raise ConfigError(f"[tokenbatch] must be a table: {path}")
        return data

    @staticmethod
    def _apply_environment_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply TOKENBATCH_* environment variable overrides."""
        result = config.copy()

        for key in ("encoding", "model", "destination_key"):
            env_key = f"{ENV_PREFIX}{key.upper()}"
            if env_key in os.environ:
                result[key] = os.environ[env_key]

        env_key = f"{ENV_PREFIX}MAX_TOKENS"
        if env_key in os.environ:
            try:
                result["max_tokens"] = int(os.environ[env_key])
            except ValueError:
                logger.warning(f"Invalid {env_key} value: {os.environ[env_key]}")

        for key in ("error_token_limit", "continue_on_fail"):
            env_key = f"{ENV_PREFIX}{key.upper()}"
            if env_key in os.environ:
                result[key] = os.environ[env_key].strip().lower() in _TRUE_VALUES

        return result

    @staticmethod
    def load_from_file(config_path: Path) -> TokenBatchConfig:
        config_data = TokenBatchConfigLoader._read_toml_file(config_path)
        config_data = TokenBatchConfigLoader._apply_environment_overrides(config_data)
        return TokenBatchConfig.from_dict(config_data)

    @staticmethod
    def load_from_dict(config_data: Dict[str, Any]) -> TokenBatchConfig:
        config_data = TokenBatchConfigLoader._apply_environment_overrides(config_data)
        return TokenBatchConfig.from_dict(config_data)


def load_config(
    config_path: Optional[Path] = None,
    config_dict: Optional[Dict[str, Any]] = None,
) -> TokenBatchConfig:
    """Load configuration from a TOML file, a dictionary, or defaults.

    Environment overrides are applied in every case.

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    if config_path is not None and config_dict is not None:
        raise ConfigError("Cannot specify both config_path and config_dict")

    if config_path is not None:
        return TokenBatchConfigLoader.load_from_file(config_path)
    return TokenBatchConfigLoader.load_from_dict(dict(config_dict or {}))


def write_config(config: TokenBatchConfig, output_path: Path) -> None:
    """Write configuration to a TOML file under a ``[tokenbatch]`` table."""
    try:
        import tomli_w
    except ImportError:
        raise ConfigError("tomli_w package required for writing TOML files. Install with: pip install tomli_w")

    # TOML has no null; unset values are left out.
    data = {k: v for k, v in config.to_dict().items() if v is not None}
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "wb") as f:
        tomli_w.dump({"tokenbatch": data}, f)
    logger.info(f"Wrote configuration to {output_path}")


def create_example_config() -> str:
    """Create example TOML configuration file content."""
    return '''# tokenbatch configuration

[tokenbatch]
# BPE encoding used for every operation (cl100k_base, o200k_base, p50k_base, r50k_base)
encoding = "cl100k_base"

# Optional: pick the encoding from a model name instead (remove "encoding" above)
# model = "gpt-4"

# Token limit for isWithinTokenLimit and sliceMatchingTokenLimit
max_tokens = 2048

# Key the result is written to; empty uses the operation default
destination_key = ""

# Fail records that exceed max_tokens in isWithinTokenLimit
error_token_limit = false

# Collect failed records instead of aborting the batch
continue_on_fail = false

# Environment Variable Overrides:
# TOKENBATCH_ENCODING, TOKENBATCH_MODEL, TOKENBATCH_MAX_TOKENS,
# TOKENBATCH_DESTINATION_KEY, TOKENBATCH_ERROR_TOKEN_LIMIT,
# TOKENBATCH_CONTINUE_ON_FAIL
'''
