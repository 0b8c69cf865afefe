"""Configuration from action inputs, ``.lcovgate.yml`` and command-line flags.

Sources, lowest precedence first:

1. defaults
2. ``.lcovgate.yml`` (``${VAR}`` placeholders resolved from the environment)
3. GitHub Actions inputs (``INPUT_<NAME>`` environment variables)
4. explicit overrides (command-line flags)
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from dataclasses import dataclass, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".lcovgate.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")
_TRUE_VALUES = frozenset({"true"})
_MAX_PERCENTAGE = 100.0


class ConfigurationError(Exception):
    """Raised when a required option is missing or an option is invalid."""


def default_scratch_directory() -> str:
    """Return the per-job scratch directory under the system temp dir."""
    return str(Path(tempfile.gettempdir()) / "lcovgate")


@dataclass
class ActionConfig:
    """Every recognised option, typed, assembled once per run."""

    coverage_files: str = ""
    """Glob pattern of lcov trace files (required)."""

    minimum_coverage: float = 0.0
    """Minimum total line coverage percentage."""

    github_token: str = ""
    """Token for commenting; empty disables all comment posting."""

    working_directory: str = "./"
    """Directory the traces were produced in, relative to the repository root."""

    artifact_name: str = ""
    """Name of the HTML report artifact; empty disables report generation."""

    artifact_directory: str = ""
    """Where the report is stored for upload; defaults to ``<scratch>/artifacts``."""

    title_prefix: str = ""
    """Text placed before the comment title (also scopes the tracked comment)."""

    additional_message: str = ""
    """Extra markdown appended to the comment."""

    update_comment: bool = False
    """Update the previous coverage comment instead of adding a new one."""

    genhtml_ignore_errors: str = ""
    """Value passed to ``genhtml --ignore-errors``."""

    scratch_directory: str = ""
    """Directory for the merged trace and the report; defaults to ``<tmp>/lcovgate``."""

    def __post_init__(self) -> None:
        if not self.scratch_directory:
            self.scratch_directory = default_scratch_directory()
        if not self.artifact_directory:
            self.artifact_directory = str(Path(self.scratch_directory) / "artifacts")

    @property
    def comments_enabled(self) -> bool:
        """Return True when a token is configured."""
        return bool(self.github_token.strip())


# Option name (as used in action.yml / .lcovgate.yml) -> ActionConfig field.
OPTION_NAMES: dict[str, str] = {
    f.name.replace("_", "-"): f.name for f in fields(ActionConfig)
}


def _resolve_env_vars(value: str, env: Mapping[str, str]) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = env.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _load_yaml_options(path: Path, env: Mapping[str, str]) -> dict[str, Any]:
    """Read option values from a YAML file, keyed by field name."""
    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Unable to read {path}: {exc}") from exc

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ConfigurationError(f"{path} must contain a mapping of options")

    options: dict[str, Any] = {}
    for key, value in parsed.items():
        field_name = OPTION_NAMES.get(str(key).replace("_", "-"))
        if field_name is None:
            logger.warning("Ignoring unknown option %r in %s", key, path)
            continue
        options[field_name] = _resolve_env_vars(value, env) if isinstance(value, str) else value
    return options


def _input_env_names(option: str) -> tuple[str, str]:
    """Return the environment names GitHub Actions may use for an input."""
    upper = option.replace(" ", "_").upper()
    return f"INPUT_{upper}", f"INPUT_{upper.replace('-', '_')}"


def _load_input_options(env: Mapping[str, str]) -> dict[str, Any]:
    """Read ``INPUT_*`` variables set by the GitHub Actions runner."""
    options: dict[str, Any] = {}
    for option, field_name in OPTION_NAMES.items():
        for env_name in _input_env_names(option):
            value = env.get(env_name)
            if value is not None and value.strip() != "":
                options[field_name] = value
                break
    return options


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _parse_percentage(value: Any) -> float:
    if isinstance(value, str) and not value.strip():
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"minimum-coverage must be a number (got: {value!r})") from exc


def load_config(
    config_file: str | Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ActionConfig:
    """Assemble the run configuration.

    Args:
        config_file: YAML file to read. Defaults to ``.lcovgate.yml`` in the
            current directory, if present.
        env: Environment to read inputs from; defaults to ``os.environ``.
        overrides: Field values that win over every other source. ``None``
            values are ignored.

    Returns:
        The typed configuration (not yet validated, see :func:`validate_config`).

    Raises:
        ConfigurationError: If the YAML file is unreadable or a value cannot be parsed.
    """
    env = os.environ if env is None else env

    raw: dict[str, Any] = {}
    yaml_path = Path(config_file) if config_file else Path.cwd() / CONFIG_FILE_NAME
    if config_file and not yaml_path.is_file():
        raise ConfigurationError(f"Configuration file not found: {yaml_path}")
    if yaml_path.is_file():
        logger.debug("Loading configuration from %s", yaml_path)
        raw.update(_load_yaml_options(yaml_path, env))

    raw.update(_load_input_options(env))
    if overrides:
        raw.update({k: v for k, v in overrides.items() if v is not None})

    return ActionConfig(
        coverage_files=str(raw.get("coverage_files", "")).strip(),
        minimum_coverage=_parse_percentage(raw.get("minimum_coverage", 0.0)),
        github_token=str(raw.get("github_token", "")).strip(),
        working_directory=str(raw.get("working_directory", "")).strip() or "./",
        artifact_name=str(raw.get("artifact_name", "")).strip(),
        artifact_directory=str(raw.get("artifact_directory", "")).strip(),
        title_prefix=str(raw.get("title_prefix", "")).strip(),
        additional_message=str(raw.get("additional_message", "")),
        update_comment=_parse_bool(raw.get("update_comment", False)),
        genhtml_ignore_errors=str(raw.get("genhtml_ignore_errors", "")).strip(),
        scratch_directory=str(raw.get("scratch_directory", "")).strip(),
    )


def validate_config(config: ActionConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.coverage_files:
        errors.append("coverage-files is required")

    if not 0.0 <= config.minimum_coverage <= _MAX_PERCENTAGE:
        errors.append(
            f"minimum-coverage must be between 0 and 100 (got: {config.minimum_coverage})"
        )

    if not Path(config.working_directory).is_dir():
        errors.append(f"working-directory does not exist: {config.working_directory}")

    if "/" in config.artifact_name or "\\" in config.artifact_name:
        errors.append(f"artifact-name must not contain path separators: {config.artifact_name}")

    return errors


def require_valid(config: ActionConfig) -> ActionConfig:
    """Return *config* unchanged or raise with every validation error.

    Raises:
        ConfigurationError: If :func:`validate_config` reports any error.
    """
    errors = validate_config(config)
    if errors:
        raise ConfigurationError("; ".join(errors))
    return config
