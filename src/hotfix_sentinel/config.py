"""Configuration management for hotfix-sentinel.

Configuration is loaded from YAML/TOML files, environment variables, or
direct instantiation, and then passed explicitly to the consumer and the
gateways at construction time.

Example:
    >>> from hotfix_sentinel.config import SentinelConfig
    >>>
    >>> config = SentinelConfig.load()
    >>> config.validate()
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .constants import (
    DEFAULT_ACTION_TIMEOUT_SECONDS,
    DEFAULT_AUDIT_FILE,
    DEFAULT_BATCH_SIZE,
    DEFAULT_BRANCH_PREFIX,
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_LLM_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PULL_TIMEOUT_SECONDS,
    DEFAULT_SMTP_PORT,
    DEFAULT_SOURCE_PATH_PREFIX,
    GITHUB_API_URL,
    VALID_AUDIT_BACKENDS,
    VALID_CLASSIFIERS,
    VALID_LLM_PROVIDERS,
    VALID_LOG_LEVELS,
)
from .exceptions import ConfigurationError, InvalidConfigError

logger = logging.getLogger(__name__)


@dataclass
class SentinelConfig:
    """
    Configuration for hotfix-sentinel.

    Sources, lowest precedence first:
    1. Field defaults
    2. Configuration file (YAML or TOML)
    3. ``HOTFIX_SENTINEL_<SECTION>_<KEY>`` environment variables

    Config file locations (searched in order):
        ./hotfix-sentinel.yaml, ./hotfix-sentinel.toml
        ~/.hotfix-sentinel.yaml, ~/.hotfix-sentinel.toml
        /etc/hotfix-sentinel.yaml, /etc/hotfix-sentinel.toml
    """
    # Queue
    gcp_project: str = ""
    subscription: str = ""
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    batch_size: int = DEFAULT_BATCH_SIZE
    pull_timeout: float = DEFAULT_PULL_TIMEOUT_SECONDS

    # Workflow
    action_timeout: float = DEFAULT_ACTION_TIMEOUT_SECONDS
    branch_prefix: str = DEFAULT_BRANCH_PREFIX
    source_path_prefix: str = DEFAULT_SOURCE_PATH_PREFIX
    dry_run: bool = False

    # Classification
    classifier: str = "rules"
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    llm_provider: str = "none"
    llm_model: str = ""
    llm_timeout: int = DEFAULT_LLM_TIMEOUT_SECONDS

    # Source control
    github_token: str = ""
    github_owner: str = ""
    github_repo: str = ""
    github_api_url: str = GITHUB_API_URL

    # Issue tracker
    jira_base_url: str = ""
    jira_email: str = ""
    jira_api_token: str = ""
    jira_project_key: str = ""
    jira_epic_key: str = ""

    # Notifications
    smtp_host: str = ""
    smtp_port: int = DEFAULT_SMTP_PORT
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_from: str = ""
    smtp_recipients: List[str] = field(default_factory=list)
    smtp_use_tls: bool = True

    # Audit
    audit_backend: str = "memory"
    audit_file: str = DEFAULT_AUDIT_FILE

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            InvalidConfigError: If any configuration value is invalid
        """
        errors = []

        if self.poll_interval <= 0:
            errors.append(f"poll_interval must be positive, got {self.poll_interval}")
        if self.batch_size <= 0:
            errors.append(f"batch_size must be positive, got {self.batch_size}")
        if self.pull_timeout <= 0:
            errors.append(f"pull_timeout must be positive, got {self.pull_timeout}")
        if self.action_timeout <= 0:
            errors.append(f"action_timeout must be positive, got {self.action_timeout}")
        if self.llm_timeout <= 0:
            errors.append(f"llm_timeout must be positive, got {self.llm_timeout}")
        if not 0 < self.smtp_port < 65536:
            errors.append(f"smtp_port must be a valid port, got {self.smtp_port}")

        if not self.branch_prefix or self.branch_prefix.startswith("/"):
            errors.append(f"branch_prefix is invalid: '{self.branch_prefix}'")

        if self.classifier not in VALID_CLASSIFIERS:
            errors.append(
                f"classifier must be one of {sorted(VALID_CLASSIFIERS)}, got '{self.classifier}'"
            )
        if self.llm_provider not in VALID_LLM_PROVIDERS:
            errors.append(
                f"llm_provider must be one of {sorted(VALID_LLM_PROVIDERS)}, got '{self.llm_provider}'"
            )
        if self.classifier == "llm" and self.llm_provider == "none":
            errors.append("classifier 'llm' requires an llm_provider")

        if not (0.0 <= self.confidence_threshold <= 1.0):
            errors.append(
                f"confidence_threshold must be between 0.0 and 1.0, got {self.confidence_threshold}"
            )

        if self.audit_backend not in VALID_AUDIT_BACKENDS:
            errors.append(
                f"audit_backend must be one of {sorted(VALID_AUDIT_BACKENDS)}, got '{self.audit_backend}'"
            )

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got '{self.log_level}'"
            )

        if errors:
            raise InvalidConfigError(
                "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            )

    def missing_settings(self) -> List[str]:
        """
        List settings required to talk to real external systems.

        Dry runs use in-memory gateways and need none of them.
        """
        if self.dry_run:
            return []

        required = {
            "subscription": self.subscription,
            "gcp_project": self.gcp_project,
            "github_token": self.github_token,
            "github_owner": self.github_owner,
            "github_repo": self.github_repo,
            "jira_base_url": self.jira_base_url,
            "jira_email": self.jira_email,
            "jira_api_token": self.jira_api_token,
            "jira_project_key": self.jira_project_key,
            "smtp_host": self.smtp_host,
            "smtp_from": self.smtp_from,
        }
        missing = [name for name, value in required.items() if not value]
        if not self.smtp_recipients:
            missing.append("smtp_recipients")
        return missing

    @classmethod
    def from_env(cls) -> 'SentinelConfig':
        """Create configuration from environment variables only."""
        from .config_loader import flatten_config, get_env_config

        return cls(**flatten_config(get_env_config()))

    @classmethod
    def from_file(cls, config_path: Optional[str] = None) -> 'SentinelConfig':
        """
        Create configuration from file with environment variable overrides.

        An explicit ``config_path`` that does not exist raises
        FileNotFoundError. A file that cannot be parsed is logged and the
        environment-only configuration is used instead.
        """
        from .config_loader import load_config_with_overrides

        try:
            config_dict = load_config_with_overrides(config_path)
        except ConfigurationError as e:
            logger.error(f"Failed to load configuration from file: {e}")
            logger.warning("Falling back to environment variable configuration")
            return cls.from_env()

        return cls(**config_dict)

    @classmethod
    def load(cls, config_path: Optional[str] = None, use_file: bool = True) -> 'SentinelConfig':
        """
        Load configuration with automatic fallback.

        Example:
            >>> config = SentinelConfig.load()                    # search files, then env
            >>> config = SentinelConfig.load("sentinel.yaml")     # explicit file
            >>> config = SentinelConfig.load(use_file=False)      # env only
        """
        if use_file:
            return cls.from_file(config_path)
        return cls.from_env()
