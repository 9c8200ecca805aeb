"""Configuration loading and Pydantic models for v4signer."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from v4signer.addressing import DEFAULT_ENDPOINT
from v4signer.scope import DEFAULT_LOCATION, DEFAULT_SERVICE
from v4signer.signing import MAX_EXPIRATION


class SignerConfig(BaseModel):
    """Signing endpoint and credential-scope configuration."""

    endpoint: str = DEFAULT_ENDPOINT
    location: str = DEFAULT_LOCATION
    service: str = DEFAULT_SERVICE
    scheme: str = "https"
    default_expiration: int = MAX_EXPIRATION


class LoggingConfig(BaseModel):
    """Log level and output format."""

    level: str = "INFO"
    format: str = "text"


class ObservabilityConfig(BaseModel):
    """Metrics configuration."""

    metrics: bool = True


class V4SignerConfig(BaseModel):
    """Top-level v4signer configuration."""

    signer: SignerConfig = Field(default_factory=SignerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _parse_signer(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the signer section from YAML data.

    Handles the nested scope section: signer.scope.location -> location, etc.
    """
    if data is None:
        return {}
    result: dict[str, Any] = {
        "endpoint": data.get("endpoint", DEFAULT_ENDPOINT),
        "scheme": data.get("scheme", "https"),
        "default_expiration": data.get("default_expiration", MAX_EXPIRATION),
    }
    scope_section = data.get("scope")
    if isinstance(scope_section, dict):
        result["location"] = scope_section.get("location", DEFAULT_LOCATION)
        result["service"] = scope_section.get("service", DEFAULT_SERVICE)
    return result


def _parse_logging(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the logging section from YAML data."""
    if data is None:
        return {}
    return {
        "level": data.get("level", "INFO"),
        "format": data.get("format", "text"),
    }


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {"metrics": data.get("metrics", True)}


def load_config(path: Path) -> V4SignerConfig:
    """Load a V4SignerConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated V4SignerConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return V4SignerConfig(
        signer=SignerConfig(**_parse_signer(raw.get("signer"))),
        logging=LoggingConfig(**_parse_logging(raw.get("logging"))),
        observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
    )
