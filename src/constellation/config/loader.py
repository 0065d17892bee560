"""Loading of the workspace configuration file."""

import os
import re
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from loguru import logger
from pydantic_core import ValidationError

from constellation.apply.errors import ConfigValidationError

from .models import ClusterConfig

CONFIG_FILENAME = "constellation-conf.yaml"

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def substitute_env_vars(text: str) -> str:
    """
    Substitute environment variable placeholders in text.

    Supports formats:
    - ${VAR_NAME} - required variable (raises error if missing)
    - ${VAR_NAME:-default} - optional with default value
    - ${VAR_NAME:?error_message} - required with custom error message
    """

    def replacer(match: re.Match[str]) -> str:
        var_expr = match.group(1)

        if ":-" in var_expr:
            var_name, default = var_expr.split(":-", 1)
            return os.getenv(var_name, default)

        if ":?" in var_expr:
            var_name, error_msg = var_expr.split(":?", 1)
            value = os.getenv(var_name)
            if value is None:
                raise ValueError(f"Required environment variable {var_name}: {error_msg}")
            return value

        value = os.getenv(var_expr)
        if value is None:
            raise ValueError(f"Required environment variable {var_expr} not set")
        return value

    return _ENV_PATTERN.sub(replacer, text)


def load_config(workspace: Path, filename: str = CONFIG_FILENAME) -> ClusterConfig:
    """Load the cluster configuration from the workspace.

    A missing file yields the default configuration, so phases that do not
    need configuration can still run.

    Raises:
        ConfigValidationError: If the file cannot be parsed or validated, or a
            required environment variable is missing
    """
    file_path = Path(workspace) / filename
    if not file_path.is_file():
        logger.debug(f"No configuration file at {file_path}, using defaults")
        return ClusterConfig()

    logger.info(f"Loading configuration from {file_path}")
    try:
        content = substitute_env_vars(file_path.read_text())
    except ValueError as e:
        raise ConfigValidationError(f"Invalid configuration {file_path}: {e}") from e

    try:
        loaded: dict[str, Any] = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Error parsing YAML in {file_path}: {e}") from e

    if not isinstance(loaded, dict):
        raise ConfigValidationError(
            f"Invalid configuration {file_path}: expected a mapping at the top level"
        )

    try:
        return ClusterConfig(**loaded)
    except ValidationError as e:
        raise ConfigValidationError(
            f"Invalid configuration {file_path}", details=str(e)
        ) from e
