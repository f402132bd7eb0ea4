"""YAML configuration loading with allow-listed environment variable substitution."""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml
from pydantic import ValidationError

from idsync.clients.exceptions import ConfigurationError
from idsync.config.models import SyncConfig
from idsync.security.validation import (
    SecurityError,
    sanitize_log_input,
    validate_environment_variable_name,
)

logger = structlog.get_logger(__name__)


class EnvironmentVariableError(ConfigurationError):
    """A referenced environment variable is not set and has no default."""


# Variables a config file may reference through ${VAR} / ${VAR:default}
ALLOWED_ENV_VARS = frozenset({
    "IDSYNC_WEBHOOK_SECRET",
    "IDSYNC_CREDENTIAL_PROVIDER",
    "IDSYNC_TIMEOUT_SECONDS",
    "IDSYNC_RATE_LIMIT_PER_MINUTE",
    "IDSYNC_MAX_RETRIES",
    "IDSYNC_STATE_FILE",
    "LOG_LEVEL",
    "LOG_FORMAT",
})

CONFIG_FILENAMES = (
    "identity-sync.yaml",
    "identity-sync.yml",
    "config.yaml",
    "config.yml",
)

# Substituted values must stay plain scalars
_YAML_CONTROL_SEQUENCES = ('${', '#{', '&', '*', '!', '|', '>', "'", '"', '`')


def _check_value(var_name: str, value: str) -> str:
    value = value.strip()
    for sequence in _YAML_CONTROL_SEQUENCES:
        if sequence in value:
            raise SecurityError(
                f"Value of '{var_name}' contains dangerous character '{sequence}'; "
                "environment values must be plain YAML scalars"
            )
    return value


class ConfigLoader:
    """Reads a YAML file into a validated SyncConfig."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([^}:]+)(?::([^}]*))?\}')

    def __init__(self, require_env_vars: bool = True) -> None:
        """Initialize the loader.

        Args:
            require_env_vars: Fail on unset variables without a default; when
                False the placeholder is left in the text
        """
        self.require_env_vars = require_env_vars

    def load_config(self, config_path: Path) -> SyncConfig:
        """Load and validate a configuration file.

        An empty file yields the defaults.

        Raises:
            ConfigurationError: If the file is missing, unreadable, not YAML,
                references a forbidden or unset variable, or fails validation
        """
        config_path = Path(config_path)
        if not config_path.is_file():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            text = config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration: {e}") from e

        try:
            data = yaml.safe_load(self.substitute(text))
        except SecurityError as e:
            raise ConfigurationError(str(e)) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax: {e}") from e

        if data is None:
            data = {}
        elif not isinstance(data, dict):
            raise ConfigurationError("Configuration file must contain a YAML object")

        logger.debug("Loaded configuration file", path=sanitize_log_input(str(config_path)))
        return load_config_from_dict(data)

    def substitute(self, text: str) -> str:
        """Replace ``${VAR}`` and ``${VAR:default}`` placeholders.

        Raises:
            SecurityError: If a placeholder names a variable outside
                ALLOWED_ENV_VARS or a value carries YAML control characters
            EnvironmentVariableError: If required variables are unset
        """
        rejected: List[str] = []
        missing: List[str] = []

        def resolve(match: "re.Match[str]") -> str:
            name, default = match.group(1), match.group(2)
            if not validate_environment_variable_name(name):
                rejected.append(f"invalid environment variable name '{sanitize_log_input(name)}'")
                return match.group(0)
            if name not in ALLOWED_ENV_VARS:
                rejected.append(f"'{name}' is not in allowlist")
                return match.group(0)

            value = os.environ.get(name, default)
            if value is None:
                if self.require_env_vars:
                    missing.append(name)
                return match.group(0)
            return _check_value(name, value)

        result = self.ENV_VAR_PATTERN.sub(resolve, text)

        if rejected:
            raise SecurityError(
                f"Unauthorized environment variable reference: {'; '.join(rejected)}. "
                f"Allowed variables: {', '.join(sorted(ALLOWED_ENV_VARS))}"
            )
        if missing:
            raise EnvironmentVariableError(
                f"Required environment variable(s) not set: {', '.join(sorted(set(missing)))}"
            )
        return result

    def get_missing_env_vars(self, config_path: Path) -> List[str]:
        """List variables the file references that are unset and have no default."""
        config_path = Path(config_path)
        if not config_path.is_file():
            return []

        text = config_path.read_text(encoding="utf-8")
        return sorted({
            match.group(1)
            for match in self.ENV_VAR_PATTERN.finditer(text)
            if match.group(2) is None and match.group(1) not in os.environ
        })


def load_config_from_dict(config_data: Dict[str, Any]) -> SyncConfig:
    """Validate already-parsed configuration data.

    Raises:
        ConfigurationError: If validation fails
    """
    try:
        return SyncConfig.model_validate(config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """Return the nearest config file in ``start_path`` or one of its parents."""
    directory = (start_path or Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        for filename in CONFIG_FILENAMES:
            candidate = candidate_dir / filename
            if candidate.is_file():
                return candidate
    return None
