"""
Configuration file loader for hotfix-sentinel.

Supports YAML and TOML files with environment variable overrides and a
standard search path. File sections are nested (``queue``, ``workflow``,
``github`` ...); ``flatten_config`` maps them onto ``SentinelConfig`` fields.
"""

import os
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .exceptions import InvalidConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "HOTFIX_SENTINEL_"
CONFIG_BASENAME = "hotfix-sentinel"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# (section, key in file, field name on SentinelConfig, parser for env values)
FIELD_MAP: List[Tuple[str, str, str, Callable[[str], Any]]] = [
    ("queue", "project", "gcp_project", str),
    ("queue", "subscription", "subscription", str),
    ("queue", "poll_interval", "poll_interval", float),
    ("queue", "batch_size", "batch_size", int),
    ("queue", "pull_timeout", "pull_timeout", float),
    ("workflow", "action_timeout", "action_timeout", float),
    ("workflow", "branch_prefix", "branch_prefix", str),
    ("workflow", "source_path_prefix", "source_path_prefix", str),
    ("workflow", "dry_run", "dry_run", _parse_bool),
    ("classifier", "type", "classifier", str),
    ("classifier", "confidence_threshold", "confidence_threshold", float),
    ("llm", "provider", "llm_provider", str),
    ("llm", "model", "llm_model", str),
    ("llm", "timeout", "llm_timeout", int),
    ("github", "token", "github_token", str),
    ("github", "owner", "github_owner", str),
    ("github", "repo", "github_repo", str),
    ("github", "api_url", "github_api_url", str),
    ("jira", "base_url", "jira_base_url", str),
    ("jira", "email", "jira_email", str),
    ("jira", "api_token", "jira_api_token", str),
    ("jira", "project_key", "jira_project_key", str),
    ("jira", "epic_key", "jira_epic_key", str),
    ("smtp", "host", "smtp_host", str),
    ("smtp", "port", "smtp_port", int),
    ("smtp", "username", "smtp_username", str),
    ("smtp", "password", "smtp_password", str),
    ("smtp", "from_addr", "smtp_from", str),
    ("smtp", "recipients", "smtp_recipients", _parse_list),
    ("smtp", "use_tls", "smtp_use_tls", _parse_bool),
    ("audit", "backend", "audit_backend", str),
    ("audit", "file", "audit_file", str),
    ("logging", "level", "log_level", str),
    ("logging", "file", "log_file", str),
    ("logging", "json", "log_json", _parse_bool),
]


def env_var_name(section: str, key: str) -> str:
    """Environment variable overriding ``section.key``."""
    return f"{ENV_PREFIX}{section.upper()}_{key.upper()}"


def load_yaml_file(path: Path) -> dict:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If file doesn't exist
        InvalidConfigError: If YAML parsing fails
    """
    import yaml

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidConfigError(f"Failed to parse YAML config file {path}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise InvalidConfigError(f"Config file {path} must contain a mapping")
    return config


def load_toml_file(path: Path) -> dict:
    """
    Load configuration from a TOML file.

    Raises:
        FileNotFoundError: If file doesn't exist
        InvalidConfigError: If TOML parsing fails
    """
    try:
        # Python 3.11+ has tomllib built-in
        import tomllib
    except ImportError:
        import tomli as tomllib

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, 'rb') as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise InvalidConfigError(f"Failed to parse TOML config file {path}: {e}") from e


def load_config_file(path: str) -> dict:
    """
    Load configuration from a YAML or TOML file, chosen by extension.

    Raises:
        InvalidConfigError: If the extension is not supported or parsing fails
        FileNotFoundError: If file doesn't exist
    """
    file_path = Path(path)
    suffix = file_path.suffix.lower()

    if suffix in ['.yaml', '.yml']:
        return load_yaml_file(file_path)
    elif suffix == '.toml':
        return load_toml_file(file_path)
    else:
        raise InvalidConfigError(
            f"Unsupported config file format: {suffix}. "
            "Supported formats: .yaml, .yml, .toml"
        )


def find_config_file() -> Optional[Path]:
    """
    Search for a configuration file in standard locations.

    Search order: ./hotfix-sentinel.{yaml,toml}, ~/.hotfix-sentinel.{yaml,toml},
    /etc/hotfix-sentinel.{yaml,toml}.
    """
    search_paths = [
        Path.cwd() / f"{CONFIG_BASENAME}.yaml",
        Path.cwd() / f"{CONFIG_BASENAME}.toml",
        Path.home() / f".{CONFIG_BASENAME}.yaml",
        Path.home() / f".{CONFIG_BASENAME}.toml",
        Path(f"/etc/{CONFIG_BASENAME}.yaml"),
        Path(f"/etc/{CONFIG_BASENAME}.toml"),
    ]

    for path in search_paths:
        if path.exists() and path.is_file():
            logger.info(f"Found configuration file: {path}")
            return path

    logger.debug("No configuration file found in standard locations")
    return None


def get_env_config() -> dict:
    """
    Extract nested configuration from ``HOTFIX_SENTINEL_*`` variables.

    Values that fail to parse are logged and ignored.
    """
    config: Dict[str, Dict[str, Any]] = {}

    for section, key, _field, parser in FIELD_MAP:
        name = env_var_name(section, key)
        raw = os.getenv(name)
        if raw is None or raw == "":
            continue
        try:
            value = parser(raw)
        except ValueError:
            logger.warning(f"Invalid {name}, ignoring")
            continue
        config.setdefault(section, {})[key] = value

    return config


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries, with override values taking precedence."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def flatten_config(config: dict) -> dict:
    """
    Flatten nested configuration to ``SentinelConfig`` field names.

    Unknown sections and keys are ignored with a debug message.
    """
    flat = {}
    known = {(section, key): field for section, key, field, _ in FIELD_MAP}

    for section, values in config.items():
        if not isinstance(values, dict):
            logger.debug(f"Ignoring non-mapping config section: {section}")
            continue
        for key, value in values.items():
            field = known.get((section, key))
            if field is None:
                logger.debug(f"Ignoring unknown config key: {section}.{key}")
                continue
            if field == "smtp_recipients" and isinstance(value, str):
                value = _parse_list(value)
            flat[field] = value

    return flat


def merge_config(file_config: dict, env_config: dict) -> dict:
    """Merge file and environment configuration (env wins) and flatten."""
    return flatten_config(deep_merge(file_config, env_config))


def load_config_with_overrides(config_path: Optional[str] = None) -> dict:
    """
    Load configuration from file with environment variable overrides.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations.

    Returns:
        Flattened configuration dictionary
    """
    file_config = {}

    if config_path:
        file_config = load_config_file(config_path)
        logger.info(f"Loaded configuration from: {config_path}")
    else:
        found_path = find_config_file()
        if found_path:
            file_config = load_config_file(str(found_path))
            logger.info(f"Loaded configuration from: {found_path}")

    env_config = get_env_config()
    if env_config:
        logger.info("Applying environment variable overrides")

    return merge_config(file_config, env_config)
