# src/fusebatch/core/config.py
"""
Configuration schema and loading for the fusebatch client.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "LANGFUSE"


class LangfuseSettings(BaseModel):
    """Connection and pipeline settings for a Langfuse ingestion client.

    Example YAML:
        url: https://cloud.langfuse.com
        public_key: ${LANGFUSE_PUBLIC_KEY}
        secret_key: ${LANGFUSE_SECRET_KEY}
        number_of_event_processor: 2
        batch_size: 50
        batch_timeout_seconds: 2.5
    """

    model_config = {"frozen": True}

    url: str = Field(default="", description="Langfuse server base URL")
    public_key: str = Field(default="", description="Project public key (basic-auth user)")
    secret_key: str = Field(default="", description="Project secret key (basic-auth password)")

    number_of_event_processor: int = Field(default=1, ge=0, description="Background batch workers (0 disables delivery)")
    batch_size: int = Field(default=100, ge=1, description="Events per batch before a size-triggered flush")
    batch_timeout_seconds: float = Field(default=5.0, gt=0, description="Maximum age of a pending batch")
    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    retry_delay_seconds: float = Field(default=1.0, ge=0, description="Base backoff delay, doubled per retry")

    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request HTTP timeout")
    max_idle_conns: int = Field(default=100, gt=0, description="Maximum pooled connections")
    max_idle_conns_per_host: int = Field(default=10, gt=0, description="Maximum keep-alive connections")
    idle_conn_timeout_seconds: float = Field(default=90.0, gt=0, description="Idle keep-alive expiry")
    compression_threshold_bytes: int = Field(default=1024, ge=0, description="Gzip request bodies larger than this")

    @field_validator("url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        return v.strip()


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

# Older deployments spell some settings differently; the current name wins when both are set
_LEGACY_KEYS = {
    "num_of_event_processor": "number_of_event_processor",
}


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            default = match.group(2)
            if default is not None:
                return default
            # No env var and no default - keep original
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def load_settings(config_path: Path | None = None) -> LangfuseSettings:
    """Load settings from an optional YAML file and LANGFUSE_* environment variables.

    Precedence:
    1. Environment variables (LANGFUSE_*) - highest priority
    2. Config file, when given
    3. Defaults from the Pydantic schema - lowest priority

    Environment variable format: LANGFUSE_BATCH_SIZE=50. LANGFUSE_NUM_OF_EVENT_PROCESSOR
    is accepted as an alias for LANGFUSE_NUMBER_OF_EVENT_PROCESSOR.

    Args:
        config_path: Optional path to a YAML configuration file

    Returns:
        Validated LangfuseSettings instance

    Raises:
        pydantic.ValidationError: If configuration fails validation
        FileNotFoundError: If config_path is given but doesn't exist
    """
    from dynaconf import Dynaconf

    settings_files: list[str] = []
    if config_path is not None:
        # Dynaconf silently accepts missing files
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        settings_files.append(str(config_path))

    dynaconf_settings = Dynaconf(
        envvar_prefix=ENV_PREFIX,
        settings_files=settings_files,
        environments=False,
        load_dotenv=False,
    )

    # Dynaconf returns uppercase keys; Pydantic fields are lowercase.
    # Keys that aren't settings fields (Dynaconf internals, stray env vars) are dropped.
    merged = {k.lower(): v for k, v in dynaconf_settings.as_dict().items()}
    for legacy, current in _LEGACY_KEYS.items():
        if legacy in merged:
            merged.setdefault(current, merged.pop(legacy))
    known = set(LangfuseSettings.model_fields)
    raw_config = {k: v for k, v in merged.items() if k in known}

    return LangfuseSettings(**_expand_env_vars(raw_config))
