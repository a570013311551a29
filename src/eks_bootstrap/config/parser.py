"""YAML configuration loader."""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from eks_bootstrap.utils.errors import ConfigurationError
from eks_bootstrap.utils.logging import get_logger

from .models import AppConfig

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = "eks-bootstrap.yaml"

KNOWN_SECTIONS = {
    "project",
    "network",
    "cluster",
    "iam",
    "waits",
    "security_groups",
    "databases",
    "cache",
    "kubectl",
}


class ConfigValidationError(ConfigurationError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.errors = errors or []
        super().__init__(message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  - {location}: {msg}")

        return "\n".join(error_lines)

    def to_user_message(self) -> str:
        return str(self)


class Config:
    """Loads the optional configuration file into an AppConfig."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to the YAML configuration file. When the file
                does not exist the built-in defaults are used.
        """
        self.config_path = Path(config_path or DEFAULT_CONFIG_FILE)
        self.data: Dict = {}
        self.app: Optional[AppConfig] = None

    def load(self, overrides: Optional[Dict] = None) -> AppConfig:
        """Load and validate configuration.

        Args:
            overrides: Values applied on top of the file, e.g.
                ``{"project": {"region": "eu-west-1"}}`` from command-line options

        Returns:
            Validated AppConfig

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    self.data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigValidationError(f"Failed to parse YAML: {e}")
            logger.debug(f"Loaded configuration from {self.config_path}")
        else:
            logger.debug(f"No configuration file at {self.config_path}, using defaults")
            self.data = {}

        if not isinstance(self.data, dict):
            raise ConfigValidationError(
                f"Configuration root must be a mapping, got {type(self.data).__name__}"
            )

        data = _merge(self.data, overrides or {})

        validation_errors = self.validate(data)
        if validation_errors:
            raise ConfigValidationError(
                f"Configuration validation failed with {len(validation_errors)} error(s)",
                validation_errors,
            )

        self.app = AppConfig(**data)
        return self.app

    def validate(self, data: Optional[Dict] = None) -> List[Dict]:
        """Validate configuration against schema.

        Returns:
            List of validation errors (empty if valid)
        """
        data = self.data if data is None else data
        errors = []

        for section in data:
            if section not in KNOWN_SECTIONS:
                errors.append({"loc": [section], "msg": "Unknown configuration section"})

        if errors:
            return errors

        try:
            AppConfig(**data)
        except ValidationError as e:
            for error in e.errors():
                errors.append({"loc": list(error["loc"]), "msg": error["msg"]})

        return errors


def _merge(base: Dict, overrides: Dict) -> Dict:
    """Recursively merge two mappings without mutating either."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        elif value is not None:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None, overrides: Optional[Dict] = None) -> AppConfig:
    """Load configuration from ``config_path`` with optional overrides."""
    return Config(config_path).load(overrides)
