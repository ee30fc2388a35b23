"""
Command line interface for hotfix-sentinel.
"""
import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List

from . import __version__
from .api.health import get_incident_trail, get_readiness_status, list_incidents
from .audit import AuditTrail, JsonlAuditBackend
from .bootstrap import build_classifier, build_consumer, build_llm_provider, build_workflow
from .config import SentinelConfig
from .exceptions import ClassificationFailure, ConfigurationError
from .logging_config import setup_logging
from .models import Evidence, action_sequence_for, incident_key_for
from .queue import InMemoryQueueTransport

logger = logging.getLogger(__name__)

SECRET_FIELDS = ("github_token", "jira_api_token", "smtp_password")

EXIT_ABORTED = 2


def load_config(args: argparse.Namespace) -> SentinelConfig:
    """Load configuration and apply command-line overrides."""
    config = SentinelConfig.load(args.config_file) if getattr(args, 'config_file', None) else SentinelConfig.load()

    if getattr(args, 'dry_run', False):
        config.dry_run = True
    if getattr(args, 'poll_interval', None):
        config.poll_interval = args.poll_interval
    if getattr(args, 'classifier', None):
        config.classifier = args.classifier
    if getattr(args, 'llm_provider', None):
        config.llm_provider = args.llm_provider
    if getattr(args, 'llm_model', None):
        config.llm_model = args.llm_model

    return config


def configure_logging(args: argparse.Namespace, config: SentinelConfig) -> None:
    """Configure logging from the config, letting global flags override the level."""
    if args.debug:
        level = 'DEBUG'
    elif args.quiet:
        level = 'ERROR'
    elif args.verbose:
        level = 'INFO'
    else:
        level = config.log_level

    setup_logging(level=level, log_file=config.log_file, json_format=config.log_json)


def masked_config(config: SentinelConfig) -> Dict[str, Any]:
    """Configuration as a dictionary with credentials masked."""
    data = asdict(config)
    for name in SECRET_FIELDS:
        if data.get(name):
            data[name] = "***"
    return data


def read_evidence(paths: List[str]) -> List[Evidence]:
    """One evidence item per file."""
    evidence = []
    for path in paths:
        input_path = Path(path)
        if not input_path.is_file():
            raise FileNotFoundError(f"Input file not found: {input_path}")
        evidence.append(Evidence.from_text(input_path.read_text(encoding="utf-8"), message_id=input_path.name))
    return evidence


def handle_run(args: argparse.Namespace) -> int:
    """
    Handle the run subcommand: poll the queue until interrupted.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (130 when stopped with Ctrl-C, non-zero for failure)
    """
    try:
        config = load_config(args)
        configure_logging(args, config)

        try:
            consumer = build_consumer(config)
        except ConfigurationError as e:
            logger.error(str(e))
            print(f"ERROR: {e}")
            return 1

        consumer.start()
        try:
            while consumer.is_running:
                consumer.join(timeout=1.0)
        except KeyboardInterrupt:
            logger.info("Interrupted by user, stopping after the in-flight batch")
            consumer.stop()
            logger.info(f"Consumer stats: {consumer.stats()}")
            return 130

        logger.error("Consumer stopped unexpectedly")
        return 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=args.debug)
        return 1


def handle_poll_once(args: argparse.Namespace) -> int:
    """
    Handle the poll-once subcommand: process at most one batch and exit.

    Returns:
        Exit code (0 if nothing to do or the run succeeded, 2 if it aborted)
    """
    try:
        config = load_config(args)
        configure_logging(args, config)

        transport = None
        if args.evidence:
            if not config.dry_run:
                print("ERROR: --evidence requires --dry-run")
                return 1
            transport = InMemoryQueueTransport()
            for item in read_evidence(args.evidence):
                transport.publish(item.data, {"source": item.message_id})

        try:
            config.validate()
            workflow = build_workflow(config)
        except ConfigurationError as e:
            logger.error(str(e))
            print(f"ERROR: {e}")
            return 1

        with workflow:
            try:
                consumer = build_consumer(config, transport=transport, workflow=workflow)
            except ConfigurationError as e:
                logger.error(str(e))
                print(f"ERROR: {e}")
                return 1

            record = consumer.run_once()
            if record is None:
                print("No incident processed.")
                return 0

            if args.json:
                print(json.dumps(record.to_dict(), indent=2))
            else:
                print(workflow.audit_trail.summary(record.incident_id))

        return 0 if record.succeeded else EXIT_ABORTED

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=args.debug)
        return 1


def handle_classify(args: argparse.Namespace) -> int:
    """
    Handle the classify subcommand: classify log files without side effects.
    """
    try:
        config = load_config(args)
        configure_logging(args, config)

        try:
            evidence = read_evidence(args.input)
        except FileNotFoundError as e:
            print(f"ERROR: {e}")
            return 1

        classifier = build_classifier(config, build_llm_provider(config))

        try:
            classification = classifier.classify(evidence)
        except ClassificationFailure as e:
            print(f"ERROR: Classification failed - {e}")
            return 1

        print(json.dumps({
            "incident_key": incident_key_for(evidence),
            "classification": classification.model_dump(mode="json"),
            "actions": [action.value for action in action_sequence_for(classification)],
        }, indent=2))
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=args.debug)
        return 1


def handle_trail(args: argparse.Namespace) -> int:
    """
    Handle the trail subcommand: show recorded incidents from a JSONL audit file.
    """
    try:
        config = load_config(args)
        configure_logging(args, config)

        audit_path = Path(args.file or config.audit_file)
        if not audit_path.is_file():
            print(f"ERROR: Audit file not found: {audit_path}")
            return 1

        trail = AuditTrail(JsonlAuditBackend(str(audit_path)))

        if args.incident_id:
            result = get_incident_trail(trail, args.incident_id)
            if result["status"] == "not_found":
                print(f"ERROR: No audit trail for {args.incident_id}")
                return 1
            if args.json:
                print(json.dumps(result, indent=2))
            else:
                print(result["summary"])
            return 0

        listing = list_incidents(trail, limit=args.limit)
        if args.json:
            print(json.dumps(listing, indent=2))
        elif not listing["incidents"]:
            print("No incidents recorded.")
        else:
            for item in listing["incidents"]:
                line = f"{item['incident_id']}  {item['status'].upper()}"
                if item["reason"]:
                    line += f"  {item['reason']}"
                print(line)
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=args.debug)
        return 1


def handle_version(args: argparse.Namespace) -> int:
    """
    Handle the version subcommand.

    Returns:
        Exit code (0 for success)
    """
    print(f"hotfix-sentinel version {__version__}")
    print("Automated incident remediation orchestrator")

    if args.verbose:
        print(f"\nPython: {sys.version}")
        try:
            config = load_config(args)
            print(f"Classifier: {config.classifier}")
            print(f"LLM Provider: {config.llm_provider}")
        except Exception as e:
            logger.debug(f"Could not load configuration: {e}")

    return 0


def handle_config(args: argparse.Namespace) -> int:
    """
    Handle the config subcommand.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        config = load_config(args)

        if args.action == "validate":
            readiness = get_readiness_status(config)
            if readiness["status"] == "ready":
                print("✓ Configuration is valid")
                if config.dry_run:
                    print("  (dry run: external integrations are not used)")
                return 0
            for problem in readiness["problems"]:
                print(f"ERROR: {problem}")
            return 1

        # show
        print("Current hotfix-sentinel configuration:")
        print(f"  Subscription: {config.subscription or '(unset)'}")
        print(f"  Poll interval: {config.poll_interval:g}s")
        print(f"  Batch size: {config.batch_size}")
        print(f"  Action timeout: {config.action_timeout:g}s")
        print(f"  Classifier: {config.classifier}")
        print(f"  LLM Provider: {config.llm_provider}")
        print(f"  Audit backend: {config.audit_backend}")
        print(f"  Dry run: {config.dry_run}")

        if args.verbose:
            print("\nFull configuration:")
            print(json.dumps(masked_config(config), indent=2))

        return 0

    except Exception as e:
        logger.error(f"Config operation failed: {e}", exc_info=args.debug)
        print(f"ERROR: {e}")
        return 1


def add_runtime_overrides(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use in-memory queue and gateways; no external system is touched"
    )
    subparser.add_argument(
        "--classifier",
        choices=["rules", "llm"],
        help="Override classifier (overrides HOTFIX_SENTINEL_CLASSIFIER_TYPE)"
    )
    subparser.add_argument(
        "--llm-provider",
        choices=["openai", "anthropic", "none"],
        help="Override LLM provider (overrides HOTFIX_SENTINEL_LLM_PROVIDER)"
    )
    subparser.add_argument(
        "--llm-model",
        help="Override LLM model (overrides HOTFIX_SENTINEL_LLM_MODEL)"
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser with subcommands.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="hotfix-sentinel",
        description="hotfix-sentinel: turn production error logs into hotfix PRs, tickets and notifications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Poll the subscription every 2 minutes until Ctrl-C
  %(prog)s run

  # Process one batch and print what was done
  %(prog)s poll-once
  %(prog)s poll-once --dry-run --evidence stacktrace.log

  # Classify a log file without touching anything
  %(prog)s classify stacktrace.log

  # Inspect the audit trail
  %(prog)s trail
  %(prog)s trail inc-20240101120000-1a2b3c4d

  # Show version and configuration
  %(prog)s version
  %(prog)s config show
  %(prog)s config validate

Environment Variables:
  HOTFIX_SENTINEL_QUEUE_PROJECT        GCP project of the subscription
  HOTFIX_SENTINEL_QUEUE_SUBSCRIPTION   Pub/Sub subscription to poll
  HOTFIX_SENTINEL_GITHUB_TOKEN         GitHub token with repo scope
  HOTFIX_SENTINEL_JIRA_API_TOKEN       Atlassian API token
  HOTFIX_SENTINEL_SMTP_HOST            SMTP server for notifications
  HOTFIX_SENTINEL_LLM_PROVIDER         LLM provider (openai, anthropic, none)
  OPENAI_API_KEY                       OpenAI API key (if using openai provider)
  ANTHROPIC_API_KEY                    Anthropic API key (if using anthropic provider)
        """
    )

    # Global flags (available to all subcommands)
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Enable quiet mode (only errors)"
    )
    parser.add_argument(
        "--config-file",
        metavar="PATH",
        help="Path to configuration file"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (overrides --verbose and --quiet)"
    )

    subparsers = parser.add_subparsers(
        dest="subcommand",
        help="Available subcommands"
    )

    # ========================================
    # RUN subcommand
    # ========================================
    run_parser = subparsers.add_parser(
        "run",
        help="Poll the queue on a fixed interval until interrupted"
    )
    add_runtime_overrides(run_parser)
    run_parser.add_argument(
        "--poll-interval",
        type=float,
        metavar="SECONDS",
        help="Seconds between polls (overrides HOTFIX_SENTINEL_QUEUE_POLL_INTERVAL)"
    )
    run_parser.set_defaults(func=handle_run)

    # ========================================
    # POLL-ONCE subcommand
    # ========================================
    poll_parser = subparsers.add_parser(
        "poll-once",
        help="Process at most one batch and exit (exit code 2 if the run aborted)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s --json
  %(prog)s --dry-run --evidence app.log --evidence worker.log
        """
    )
    add_runtime_overrides(poll_parser)
    poll_parser.add_argument(
        "--evidence",
        action="append",
        metavar="PATH",
        help="Publish a log file to the in-memory queue first (dry runs only; repeatable)"
    )
    poll_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the incident record as JSON"
    )
    poll_parser.set_defaults(func=handle_poll_once)

    # ========================================
    # CLASSIFY subcommand
    # ========================================
    classify_parser = subparsers.add_parser(
        "classify",
        help="Classify log files without performing any action"
    )
    classify_parser.add_argument(
        "input",
        nargs="+",
        help="Log file(s); each file is one evidence item"
    )
    add_runtime_overrides(classify_parser)
    classify_parser.set_defaults(func=handle_classify)

    # ========================================
    # TRAIL subcommand
    # ========================================
    trail_parser = subparsers.add_parser(
        "trail",
        help="List incidents or show one incident's audit trail"
    )
    trail_parser.add_argument(
        "incident_id",
        nargs="?",
        help="Incident to show (lists recent incidents if omitted)"
    )
    trail_parser.add_argument(
        "--file",
        metavar="PATH",
        help="JSONL audit file (default: audit.file from configuration)"
    )
    trail_parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Number of incidents to list (default: 20)"
    )
    trail_parser.add_argument(
        "--json",
        action="store_true",
        help="Print JSON instead of text"
    )
    trail_parser.set_defaults(func=handle_trail)

    # ========================================
    # VERSION subcommand
    # ========================================
    version_parser = subparsers.add_parser(
        "version",
        help="Show version information"
    )
    version_parser.set_defaults(func=handle_version)

    # ========================================
    # CONFIG subcommand
    # ========================================
    config_parser = subparsers.add_parser(
        "config",
        help="Show or validate configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s show
  %(prog)s validate
  hotfix-sentinel --verbose config show
        """
    )
    config_parser.add_argument(
        "action",
        nargs="?",
        choices=["show", "validate"],
        default="show",
        help="Config action (default: show)"
    )
    config_parser.set_defaults(func=handle_config)

    return parser


def main() -> None:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    if not hasattr(args, 'func'):
        parser.print_help()
        sys.exit(1)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
