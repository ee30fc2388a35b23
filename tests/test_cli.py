"""
Tests for the command line interface.
"""
import json
import sys

import pytest

from hotfix_sentinel import __version__
from hotfix_sentinel.audit import AuditTrail, JsonlAuditBackend
from hotfix_sentinel.classification import RuleBasedClassifier
from hotfix_sentinel.cli import create_parser, main, masked_config
from hotfix_sentinel.config import SentinelConfig
from hotfix_sentinel.gateway import in_memory_gateway
from hotfix_sentinel.models import Evidence
from hotfix_sentinel.workflow import RemediationWorkflow

from samples import JAVA_NPE_LOG, SECRET_LOG


def run_cli(*argv: str) -> int:
    args = create_parser().parse_args(list(argv))
    return args.func(args)


@pytest.fixture
def secret_log(tmp_path):
    path = tmp_path / "secret.log"
    path.write_text(SECRET_LOG, encoding="utf-8")
    return path


@pytest.fixture
def java_log(tmp_path):
    path = tmp_path / "npe.log"
    path.write_text(JAVA_NPE_LOG, encoding="utf-8")
    return path


@pytest.fixture
def audit_file(tmp_path):
    """Audit file holding one successful incident."""
    path = tmp_path / "audit.jsonl"
    trail = AuditTrail(JsonlAuditBackend(str(path)))
    with RemediationWorkflow(RuleBasedClassifier(), in_memory_gateway(), audit_trail=trail) as wf:
        record = wf.run([Evidence.from_text(SECRET_LOG)])
    return path, record.incident_id


def test_main_without_subcommand(monkeypatch, capsys) -> None:
    monkeypatch.setattr(sys, "argv", ["hotfix-sentinel"])

    with pytest.raises(SystemExit) as exc_info:
        main()

    assert exc_info.value.code == 1
    assert "usage:" in capsys.readouterr().out


def test_version(monkeypatch, capsys) -> None:
    monkeypatch.setattr(sys, "argv", ["hotfix-sentinel", "version"])

    with pytest.raises(SystemExit) as exc_info:
        main()

    assert exc_info.value.code == 0
    assert f"hotfix-sentinel version {__version__}" in capsys.readouterr().out


def test_classify_config_issue(secret_log, capsys) -> None:
    """Test classify prints the verdict and planned actions without acting."""
    assert run_cli("-q", "classify", str(secret_log)) == 0

    result = json.loads(capsys.readouterr().out)
    assert result["classification"]["kind"] == "configuration_issue"
    assert result["actions"] == ["createIssue", "sendNotification"]
    assert len(result["incident_key"]) > 0


def test_classify_code_fixable(java_log, capsys, monkeypatch) -> None:
    monkeypatch.setenv("HOTFIX_SENTINEL_WORKFLOW_SOURCE_PATH_PREFIX", "src/main/java/")

    assert run_cli("-q", "classify", str(java_log)) == 0

    result = json.loads(capsys.readouterr().out)
    assert result["classification"]["file_path_hint"] == "src/main/java/com/shop/orders/OrderService.java"
    assert result["actions"][0] == "createBranch"


def test_classify_missing_file(tmp_path, capsys) -> None:
    assert run_cli("-q", "classify", str(tmp_path / "absent.log")) == 1
    assert "Input file not found" in capsys.readouterr().out


def test_poll_once_dry_run(secret_log, capsys) -> None:
    assert run_cli("-q", "poll-once", "--dry-run", "--json", "--evidence", str(secret_log)) == 0

    record = json.loads(capsys.readouterr().out)
    assert record["status"] == "success"
    assert [o["action"] for o in record["outcomes"]] == ["createIssue", "sendNotification"]
    assert record["references"]["issue_key"] == "OPS-1"


def test_poll_once_aborted_exit_code(java_log, capsys) -> None:
    """Test an aborted run exits with code 2 and prints the trail."""
    assert run_cli("-q", "poll-once", "--dry-run", "--evidence", str(java_log)) == 2

    out = capsys.readouterr().out
    assert "ABORTED" in out
    assert "getFile FAILED (not_found)" in out


def test_poll_once_empty_queue(capsys) -> None:
    assert run_cli("-q", "poll-once", "--dry-run") == 0
    assert "No incident processed." in capsys.readouterr().out


def test_poll_once_evidence_requires_dry_run(secret_log, capsys) -> None:
    assert run_cli("-q", "poll-once", "--evidence", str(secret_log)) == 1
    assert "--evidence requires --dry-run" in capsys.readouterr().out


def test_poll_once_missing_settings(capsys) -> None:
    assert run_cli("-q", "poll-once") == 1
    assert "Missing required settings" in capsys.readouterr().out


def test_run_missing_settings(capsys) -> None:
    assert run_cli("-q", "run") == 1
    assert "ERROR: Missing required settings" in capsys.readouterr().out


def test_trail_lists_incidents(audit_file, capsys) -> None:
    path, incident_id = audit_file

    assert run_cli("-q", "trail", "--file", str(path)) == 0
    assert f"{incident_id}  SUCCESS" in capsys.readouterr().out


def test_trail_shows_incident(audit_file, capsys) -> None:
    path, incident_id = audit_file

    assert run_cli("-q", "trail", incident_id, "--file", str(path), "--json") == 0

    result = json.loads(capsys.readouterr().out)
    assert result["status"] == "success"
    assert [o["action"] for o in result["outcomes"]] == ["createIssue", "sendNotification"]


def test_trail_unknown_incident(audit_file, capsys) -> None:
    path, _ = audit_file

    assert run_cli("-q", "trail", "inc-missing", "--file", str(path)) == 1
    assert "No audit trail for inc-missing" in capsys.readouterr().out


def test_trail_missing_file(tmp_path, capsys) -> None:
    assert run_cli("-q", "trail", "--file", str(tmp_path / "none.jsonl")) == 1
    assert "Audit file not found" in capsys.readouterr().out


def test_config_validate(monkeypatch, capsys) -> None:
    monkeypatch.setenv("HOTFIX_SENTINEL_WORKFLOW_DRY_RUN", "true")

    assert run_cli("config", "validate") == 0
    assert "Configuration is valid" in capsys.readouterr().out


def test_config_validate_reports_problems(capsys) -> None:
    assert run_cli("config", "validate") == 1
    assert "ERROR: Missing required settings" in capsys.readouterr().out


def test_config_show_masks_secrets(monkeypatch, capsys) -> None:
    monkeypatch.setenv("HOTFIX_SENTINEL_GITHUB_TOKEN", "ghp_supersecret")
    monkeypatch.setenv("HOTFIX_SENTINEL_QUEUE_SUBSCRIPTION", "error-logs-sub")

    assert run_cli("--verbose", "config", "show") == 0

    out = capsys.readouterr().out
    assert "Subscription: error-logs-sub" in out
    assert '"github_token": "***"' in out
    assert "ghp_supersecret" not in out


def test_masked_config_leaves_empty_secrets() -> None:
    data = masked_config(SentinelConfig())

    assert data["github_token"] == ""
