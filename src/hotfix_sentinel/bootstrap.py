"""
Component wiring from a ``SentinelConfig``.

Configuration flows explicitly into constructors; nothing here is cached
at module level. Dry runs replace the queue and every gateway with
in-memory implementations so no external system is touched.
"""
import logging
from typing import Optional

from .audit import AuditTrail, InMemoryAuditBackend, JsonlAuditBackend
from .classification import (
    FixAuthor,
    IncidentClassifier,
    LLMClassifier,
    LLMFixAuthor,
    RuleBasedClassifier,
)
from .config import SentinelConfig
from .exceptions import InvalidConfigError, MissingConfigError
from .gateway import (
    ActionGateway,
    GitHubSourceControl,
    JiraIssueTracker,
    SmtpNotifier,
    in_memory_gateway,
)
from .llm import LLMProvider, get_llm_provider
from .queue import InMemoryQueueTransport, PubSubQueueTransport, QueueConsumer, QueueTransport
from .workflow import RemediationWorkflow

logger = logging.getLogger(__name__)


def build_llm_provider(config: SentinelConfig) -> Optional[LLMProvider]:
    """LLM provider named by the config, or None when disabled."""
    try:
        return get_llm_provider(
            config.llm_provider,
            model=config.llm_model or None,
            timeout=config.llm_timeout,
        )
    except ValueError as e:
        raise InvalidConfigError(str(e)) from e


def build_classifier(config: SentinelConfig, provider: Optional[LLMProvider] = None) -> IncidentClassifier:
    if config.classifier == "llm":
        if provider is None:
            raise InvalidConfigError("classifier 'llm' requires an llm_provider")
        return LLMClassifier(
            provider,
            confidence_threshold=config.confidence_threshold,
            source_path_prefix=config.source_path_prefix,
        )
    return RuleBasedClassifier(source_path_prefix=config.source_path_prefix)


def build_fix_author(provider: Optional[LLMProvider]) -> Optional[FixAuthor]:
    if provider is None:
        logger.warning("No LLM provider configured; code-fixable incidents will abort at updateFile")
        return None
    return LLMFixAuthor(provider)


def build_gateway(config: SentinelConfig) -> ActionGateway:
    if config.dry_run:
        logger.info("Dry run: using in-memory gateways")
        return in_memory_gateway(recipients=config.smtp_recipients or ("oncall@example.com",))

    return ActionGateway(
        source_control=GitHubSourceControl(
            token=config.github_token,
            owner=config.github_owner,
            repo=config.github_repo,
            api_url=config.github_api_url,
        ),
        issue_tracker=JiraIssueTracker(
            base_url=config.jira_base_url,
            email=config.jira_email,
            api_token=config.jira_api_token,
            project_key=config.jira_project_key,
            epic_key=config.jira_epic_key or None,
        ),
        notifier=SmtpNotifier(
            host=config.smtp_host,
            port=config.smtp_port,
            from_addr=config.smtp_from,
            recipients=config.smtp_recipients,
            username=config.smtp_username or None,
            password=config.smtp_password or None,
            use_tls=config.smtp_use_tls,
        ),
    )


def build_audit_trail(config: SentinelConfig) -> AuditTrail:
    if config.audit_backend == "jsonl":
        return AuditTrail(JsonlAuditBackend(config.audit_file))
    return AuditTrail(InMemoryAuditBackend())


def build_transport(config: SentinelConfig) -> QueueTransport:
    if config.dry_run:
        logger.info("Dry run: using in-memory queue")
        return InMemoryQueueTransport()
    return PubSubQueueTransport(project_id=config.gcp_project, subscription=config.subscription)


def build_workflow(
    config: SentinelConfig,
    gateway: Optional[ActionGateway] = None,
    audit_trail: Optional[AuditTrail] = None
) -> RemediationWorkflow:
    provider = build_llm_provider(config)
    return RemediationWorkflow(
        classifier=build_classifier(config, provider),
        gateway=gateway or build_gateway(config),
        audit_trail=audit_trail or build_audit_trail(config),
        fix_author=build_fix_author(provider),
        action_timeout=config.action_timeout,
        branch_prefix=config.branch_prefix,
    )


def build_consumer(
    config: SentinelConfig,
    transport: Optional[QueueTransport] = None,
    workflow: Optional[RemediationWorkflow] = None
) -> QueueConsumer:
    """
    Validate the configuration and assemble a ready-to-start consumer.

    Raises:
        InvalidConfigError: If a value is invalid
        MissingConfigError: If an integration setting is missing (not in dry runs)
    """
    config.validate()

    missing = config.missing_settings()
    if missing:
        raise MissingConfigError(f"Missing required settings: {', '.join(missing)}")

    return QueueConsumer(
        transport=transport or build_transport(config),
        workflow=workflow or build_workflow(config),
        batch_size=config.batch_size,
        pull_timeout=config.pull_timeout,
        poll_interval=config.poll_interval,
    )
