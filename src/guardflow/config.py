"""
GuardFlow Configuration

Loads flow settings from a YAML file (guardflow.yaml) with environment
overrides.

Example guardflow.yaml:
    availability:
      url: https://onramp.example.com/v1/availability
      timeout: 10
      max_retries: 2
    learn_more_url: https://support.example.com/why-not-available
    blocked_paths:
      - /buy
    send:
      warning_threshold: medium
      require_warning_acknowledgement: false
"""

import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from guardflow.exceptions import ConfigError


DEFAULT_CONFIG_FILE = "guardflow.yaml"

DEFAULT_AVAILABILITY_URL = "https://onramp.guardflow.dev/v1/availability"

REGION_AVAILABILITY_ARTICLE = (
    "https://support.uniswap.org/hc/en-us/articles/"
    "11306664890381-Why-isn-t-MoonPay-available-in-my-region-"
)

WARNING_LEVELS = ["low", "medium", "high", "critical"]


@dataclass
class FlowConfig:
    """Settings shared by the built-in flows."""
    availability_url: str = DEFAULT_AVAILABILITY_URL
    request_timeout: float = 10.0
    max_retries: int = 2
    retry_base_delay: float = 0.5
    learn_more_url: str = REGION_AVAILABILITY_ARTICLE
    blocked_paths: List[str] = field(default_factory=list)
    warning_threshold: str = "medium"
    require_warning_acknowledgement: bool = False
    source: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    def is_path_blocked(self, path: str) -> bool:
        """Check if a route (e.g. '/buy') is disabled for this deployment."""
        normalized = "/" + path.strip("/")
        return any(normalized == "/" + p.strip("/") for p in self.blocked_paths)

    def validate(self):
        """Raise ConfigError for out-of-range values."""
        if not self.availability_url.startswith(("http://", "https://")):
            raise ConfigError(
                f"Invalid availability URL: {self.availability_url}",
                config_key="availability.url",
            )
        if self.request_timeout <= 0:
            raise ConfigError("Request timeout must be positive", config_key="availability.timeout")
        if self.max_retries < 1:
            raise ConfigError("At least one attempt is required", config_key="availability.max_retries")
        if self.warning_threshold not in WARNING_LEVELS:
            raise ConfigError(
                f"Unknown warning threshold '{self.warning_threshold}'",
                config_key="send.warning_threshold",
                remediation=f"Use one of: {', '.join(WARNING_LEVELS)}",
            )


def get_config_path() -> Path:
    """Config path from GUARDFLOW_CONFIG, else ./guardflow.yaml."""
    return Path(os.environ.get("GUARDFLOW_CONFIG", DEFAULT_CONFIG_FILE))


def config_from_dict(data: Dict[str, Any], source: Optional[str] = None) -> FlowConfig:
    """Build a FlowConfig from parsed YAML data."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping", details=f"Got {type(data).__name__}")

    availability = data.get("availability") or {}
    send = data.get("send") or {}
    defaults = FlowConfig()

    try:
        config = FlowConfig(
            availability_url=str(availability.get("url", defaults.availability_url)),
            request_timeout=float(availability.get("timeout", defaults.request_timeout)),
            max_retries=int(availability.get("max_retries", defaults.max_retries)),
            retry_base_delay=float(availability.get("retry_base_delay", defaults.retry_base_delay)),
            learn_more_url=str(data.get("learn_more_url", defaults.learn_more_url)),
            blocked_paths=list(data.get("blocked_paths") or []),
            warning_threshold=str(send.get("warning_threshold", defaults.warning_threshold)).lower(),
            require_warning_acknowledgement=bool(
                send.get("require_warning_acknowledgement", defaults.require_warning_acknowledgement)
            ),
            source=source,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError("Invalid configuration value", details=str(e))

    config.validate()
    return config


def load_config(path: Optional[Path] = None) -> FlowConfig:
    """Load configuration from YAML.

    Args:
        path: Config file (default: GUARDFLOW_CONFIG or ./guardflow.yaml)

    Returns:
        FlowConfig; defaults if the default file does not exist
    """
    explicit = path is not None or "GUARDFLOW_CONFIG" in os.environ
    config_path = path or get_config_path()

    if not config_path.exists():
        if explicit:
            raise ConfigError(
                f"Config file not found: {config_path}",
                remediation="Create the file or unset GUARDFLOW_CONFIG",
            )
        return FlowConfig()

    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {config_path}", details=str(e))

    return config_from_dict(data, source=str(config_path))
