"""
Configuration for the Vehicle Report Pipeline

Settings are resolved in three layers: dataclass defaults, an optional YAML
file, then environment variables. The resulting PipelineConfig is built once
at process start and passed explicitly to the store, engine and pipeline.
"""

import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..core.exceptions import ConfigurationError
from ..models.job import JobType, DOWNSTREAM_STAGES

DEFAULT_MAX_CHUNK_BYTES = 20 * 1024 * 1024

# env var -> config field
ENV_OVERRIDES = {
    "DATABASE_URL": "database_url",
    "VRP_DATABASE_URL": "database_url",
    "MAX_CHUNK_SIZE": "max_chunk_bytes",
    "VRP_DOWNSTREAM_STAGES": "downstream_stages",
    "GEMINI_API_KEY": "gemini_api_key",
    "GEMINI_MODEL": "gemini_model",
    "GEMINI_BASE_URL": "gemini_base_url",
    "VRP_STORAGE_PUBLIC_URL": "storage_public_url",
    "VRP_MAX_CONCURRENT_UPLOADS": "max_concurrent_uploads",
    "VRP_BATCH_DELAY_SECONDS": "batch_delay_seconds",
    "VRP_REQUEST_TIMEOUT": "request_timeout_seconds",
    "VRP_PROMPT_TOKEN_RATE": "prompt_token_rate",
    "VRP_COMPLETION_TOKEN_RATE": "completion_token_rate",
    "VRP_STALE_JOB_SECONDS": "stale_job_seconds",
    "VRP_LOG_LEVEL": "log_level",
}


@dataclass
class PipelineConfig:
    """Runtime settings for the pipeline and its collaborators."""

    # Record store
    database_url: str = "postgresql://localhost/vehicle_reports"
    pool_size: int = 10

    # Chunking and sequencing
    max_chunk_bytes: int = DEFAULT_MAX_CHUNK_BYTES
    downstream_stages: List[str] = field(
        default_factory=lambda: [stage.value for stage in DOWNSTREAM_STAGES]
    )

    # Gemini
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    temperature: float = 0.1
    request_timeout_seconds: float = 300.0
    prompt_token_rate: float = 0.00015 / 1000
    completion_token_rate: float = 0.0006 / 1000

    # Asset storage and upload fan-out
    storage_public_url: str = ""
    max_concurrent_uploads: int = 3
    batch_delay_seconds: float = 2.0

    # Stale job reconciliation
    stale_job_seconds: int = 300

    # Logging
    log_level: str = "INFO"
    structured_logs: bool = True
    log_file: Optional[str] = None

    @property
    def upload_url(self) -> str:
        return f"{self.gemini_base_url.rstrip('/')}/upload/v1beta/files"

    @property
    def stage_types(self) -> List[JobType]:
        return [JobType(stage) for stage in self.downstream_stages]

    def validate(self) -> "PipelineConfig":
        """
        Check settings for consistency.

        Raises:
            ConfigurationError: If a setting is out of range or unknown
        """
        if self.max_chunk_bytes <= 0:
            raise ConfigurationError("max_chunk_bytes", "must be greater than zero")
        if self.max_concurrent_uploads <= 0:
            raise ConfigurationError("max_concurrent_uploads", "must be greater than zero")
        if self.batch_delay_seconds < 0:
            raise ConfigurationError("batch_delay_seconds", "must not be negative")
        if self.stale_job_seconds <= 0:
            raise ConfigurationError("stale_job_seconds", "must be greater than zero")

        valid_stages = {stage.value for stage in DOWNSTREAM_STAGES}
        for stage in self.downstream_stages:
            if stage not in valid_stages:
                raise ConfigurationError("downstream_stages", f"unknown stage '{stage}'")
        return self

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        if redact and data.get("gemini_api_key"):
            data["gemini_api_key"] = "***"
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Build a config from a mapping, coercing values to field types."""
        config = cls()
        for name, value in data.items():
            _apply(config, name, value)
        return config

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "PipelineConfig":
        """Load a config from a YAML file; a ``pipeline:`` section is optional."""
        cfg_path = Path(path).expanduser()
        if not cfg_path.exists():
            raise ConfigurationError("config_file", f"{cfg_path} does not exist")

        try:
            loaded = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError("config_file", f"invalid YAML: {e}")

        if not isinstance(loaded, dict):
            raise ConfigurationError("config_file", "top level must be a mapping")
        return cls.from_dict(loaded.get("pipeline", loaded))

    @classmethod
    def from_env(cls, base: Optional["PipelineConfig"] = None,
                 environ: Optional[Dict[str, str]] = None) -> "PipelineConfig":
        """Overlay environment variables on ``base`` (or defaults)."""
        config = base or cls()
        environ = os.environ if environ is None else environ
        for env_name, field_name in ENV_OVERRIDES.items():
            value = environ.get(env_name)
            if value not in (None, ""):
                _apply(config, field_name, value)
        return config


def load_config(path: Optional[Union[str, Path]] = None,
                environ: Optional[Dict[str, str]] = None) -> PipelineConfig:
    """
    Resolve configuration: defaults, then YAML file, then environment.

    Args:
        path: Optional YAML config file
        environ: Environment mapping, defaults to os.environ

    Returns:
        Validated PipelineConfig
    """
    base = PipelineConfig.from_yaml(path) if path else PipelineConfig()
    return PipelineConfig.from_env(base, environ).validate()


_FIELD_TYPES = {f.name: f.type for f in fields(PipelineConfig)}


def _apply(config: PipelineConfig, name: str, value: Any):
    if name not in _FIELD_TYPES:
        raise ConfigurationError(name, "unknown setting")

    current = getattr(config, name)
    try:
        if name == "downstream_stages":
            if isinstance(value, str):
                value = [part.strip() for part in value.split(",") if part.strip()]
            value = list(value)
        elif isinstance(current, bool):
            if isinstance(value, str):
                value = value.strip().lower() in ("1", "true", "yes", "on")
            else:
                value = bool(value)
        elif isinstance(current, int):
            value = int(value)
        elif isinstance(current, float):
            value = float(value)
        elif value is not None:
            value = str(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(name, f"invalid value {value!r}: {e}")

    setattr(config, name, value)
