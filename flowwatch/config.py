"""Configuration file management for flowwatch.

This module handles loading and validation of per-project configuration files
from `.flowwatch/config.toml`. Configuration files are discovered by searching
upward from the current working directory until a `.git` directory is found.
"""

import argparse
import shlex
import sys
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info < (3, 11):
    raise RuntimeError(
        "flowwatch requires Python 3.11 or greater for tomllib support. "
        f"Current version: {sys.version_info.major}.{sys.version_info.minor}"
    )

import tomllib

from .models import StepStatus
from .suite import PRIORITY_LEVELS

CONFIG_DIR_NAME = ".flowwatch"
CONFIG_FILE_NAME = "config.toml"
CONFIG_TABLE = "flowwatch"

KNOWN_KEYS = {"executable", "verbose", "empty_status", "priority", "tags", "quiet"}
EMPTY_STATUS_VALUES = (StepStatus.PASSED.value, StepStatus.SKIPPED.value)


class ConfigError(Exception):
    """Raised when configuration file operations fail."""
    pass


def find_project_root(cwd: Path) -> Path:
    """Find project root (directory containing .git) or return cwd if not found."""
    current = Path(cwd).resolve()
    root = Path(current.anchor)

    while current != root:
        if (current / ".git").exists():
            return current
        current = current.parent

    return Path(cwd).resolve()


def find_flowwatch_dir(cwd: Path, create_if_missing: bool = False) -> Optional[Path]:
    """Find the .flowwatch directory by searching upward from cwd.

    Stops at the .git directory (project boundary) or the filesystem root.

    Args:
        cwd: Current working directory to start search from
        create_if_missing: If True, create .flowwatch at the project root
            when none is found

    Returns:
        The .flowwatch directory path if found or created, None otherwise
    """
    current = Path(cwd).resolve()
    root = Path(current.anchor)
    project_root = None

    while current != root:
        candidate = current / CONFIG_DIR_NAME
        if candidate.is_dir():
            return candidate
        if (current / ".git").exists():
            project_root = current
            break
        current = current.parent

    if create_if_missing:
        target_dir = project_root if project_root is not None else Path(cwd).resolve()
        flowwatch_dir = target_dir / CONFIG_DIR_NAME
        flowwatch_dir.mkdir(parents=True, exist_ok=True)
        return flowwatch_dir

    return None


def find_config_file(cwd: Path) -> Optional[Path]:
    """Find .flowwatch/config.toml by searching upward from cwd."""
    flowwatch_dir = find_flowwatch_dir(cwd)
    if flowwatch_dir is None:
        return None

    config_file = flowwatch_dir / CONFIG_FILE_NAME
    if config_file.is_file():
        return config_file
    return None


def _type_error(key: str, expected: str, value: Any, config_file: Path) -> ConfigError:
    return ConfigError(
        f"Invalid value for '{key}' in {config_file}: "
        f"expected {expected}, got {type(value).__name__}"
    )


def validate_config(config: Dict[str, Any], config_file: Path) -> Dict[str, Any]:
    """Validate configuration values and filter out unknown keys.

    'executable' is normalized to a list of strings; a string value is split
    the way a shell would split it.

    Raises:
        ConfigError: If any validation fails
    """
    validated = {k: v for k, v in config.items() if k in KNOWN_KEYS}

    for key in ("verbose", "quiet"):
        if key in validated and not isinstance(validated[key], bool):
            raise _type_error(key, "boolean", validated[key], config_file)

    if "executable" in validated:
        value = validated["executable"]
        if isinstance(value, str):
            parts = shlex.split(value)
        elif isinstance(value, list) and all(isinstance(p, str) for p in value):
            parts = list(value)
        else:
            raise _type_error("executable", "string or list of strings", value, config_file)
        if not parts:
            raise ConfigError(f"Invalid value for 'executable' in {config_file}: must not be empty")
        validated["executable"] = parts

    if "empty_status" in validated:
        value = validated["empty_status"]
        if not isinstance(value, str):
            raise _type_error("empty_status", "string", value, config_file)
        if value not in EMPTY_STATUS_VALUES:
            raise ConfigError(
                f"Invalid value for 'empty_status' in {config_file}: "
                f"must be one of {', '.join(repr(v) for v in EMPTY_STATUS_VALUES)}, got '{value}'"
            )

    if "priority" in validated:
        value = validated["priority"]
        if not isinstance(value, str):
            raise _type_error("priority", "string", value, config_file)
        if value not in PRIORITY_LEVELS:
            raise ConfigError(
                f"Invalid value for 'priority' in {config_file}: "
                f"must be one of {', '.join(repr(v) for v in PRIORITY_LEVELS)}, got '{value}'"
            )

    if "tags" in validated:
        value = validated["tags"]
        if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
            raise _type_error("tags", "list of strings", value, config_file)

    return validated


def load_config(cwd: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from .flowwatch/config.toml, or {} if there is none.

    A config file that exists must be valid, so users can fix errors.

    Raises:
        ConfigError: If the file contains invalid TOML or values, or cannot be read
    """
    if cwd is None:
        cwd = Path.cwd()

    config_file = find_config_file(cwd)
    if config_file is None:
        return {}

    try:
        with open(config_file, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse {config_file}: Invalid TOML syntax - {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read {config_file}: {e}") from e

    section = data.get(CONFIG_TABLE, {})
    if not isinstance(section, dict):
        raise ConfigError(f"Invalid [{CONFIG_TABLE}] table in {config_file}")
    return validate_config(section, config_file)


def merge_config_and_args(config: Dict[str, Any], args: argparse.Namespace) -> argparse.Namespace:
    """Merge config file values into args, CLI args take precedence.

    store_true flags left False on the command line can be enabled by config.
    Other values are taken from config only when the CLI left them as None.
    """
    for flag in ("verbose", "quiet"):
        if hasattr(args, flag) and not getattr(args, flag) and config.get(flag, False):
            setattr(args, flag, True)

    if getattr(args, "executable", None) is None and "executable" in config:
        args.executable = config["executable"]

    if getattr(args, "empty_status", None) is None and "empty_status" in config:
        args.empty_status = config["empty_status"]

    if getattr(args, "priority", None) is None and "priority" in config:
        args.priority = config["priority"]

    if getattr(args, "tags", None) is None and "tags" in config:
        args.tags = list(config["tags"])

    return args


CONFIG_TEMPLATE = """# flowwatch configuration file
# Command-line arguments override values in this file
# Uncomment and modify values as needed

[flowwatch]
# Command that starts the test engine, as a string or a list
# (default: "npx flow-test-engine")
# executable = "npx flow-test-engine"

# Status given to steps that recorded no assertions: "passed" or "skipped"
# (default: "passed")
# empty_status = "passed"

# Only run steps of this priority: "critical", "high", "medium" or "low"
# priority = "high"

# Only run steps carrying one of these tags
# tags = ["smoke"]

# Echo engine output and enable verbose logging (default: false)
# verbose = false

# Only print failed steps and the summary (default: false)
# quiet = false
"""


def init_config(cwd: Optional[Path] = None) -> int:
    """Generate a new .flowwatch/config.toml with all options commented out.

    Returns:
        0 on success, 1 on error
    """
    if cwd is None:
        cwd = Path.cwd()

    existing_config = find_config_file(cwd)
    if existing_config is not None:
        print(f"Error: Configuration file already exists at {existing_config}", file=sys.stderr)
        print(
            "Refusing to generate a new config file. "
            "Delete or rename the existing file first.",
            file=sys.stderr,
        )
        return 1

    project_root = find_project_root(cwd)
    flowwatch_dir = find_flowwatch_dir(project_root, create_if_missing=True)
    if flowwatch_dir is None:
        print(f"Error: Failed to create {CONFIG_DIR_NAME} directory", file=sys.stderr)
        return 1

    config_file = flowwatch_dir / CONFIG_FILE_NAME
    try:
        config_file.write_text(CONFIG_TEMPLATE, encoding="utf-8")
    except OSError as e:
        print(f"Error: Failed to write configuration file: {e}", file=sys.stderr)
        return 1
    print(f"Created configuration file at {config_file}")
    return 0
