"""
Shared fixtures: environment isolation and in-memory collaborators.
"""
import pytest

from hotfix_sentinel.classification import CallableFixAuthor, RuleBasedClassifier
from hotfix_sentinel.config_loader import FIELD_MAP, env_var_name
from hotfix_sentinel.gateway import in_memory_gateway
from hotfix_sentinel.logging_config import reset_logging_config
from hotfix_sentinel.models import Evidence
from hotfix_sentinel.workflow import RemediationWorkflow

from samples import JAVA_NPE_LOG, ORDER_SERVICE_PATH, ORDER_SERVICE_SOURCE


def guard_null(classification, path, current_content, evidence):
    """Fix function used by the workflow tests."""
    return current_content.replace(
        "return coupon.length();",
        "return coupon == null ? 0 : coupon.length();",
    )


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Isolate tests from real configuration files and variables."""
    for section, key, _field, _parser in FIELD_MAP:
        monkeypatch.delenv(env_var_name(section, key), raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    yield
    reset_logging_config()


@pytest.fixture
def java_evidence():
    return [Evidence.from_text(JAVA_NPE_LOG, message_id="m-1")]


@pytest.fixture
def gateway():
    return in_memory_gateway(files={ORDER_SERVICE_PATH: ORDER_SERVICE_SOURCE})


@pytest.fixture
def fix_author():
    return CallableFixAuthor(guard_null)


@pytest.fixture
def workflow(gateway, fix_author):
    wf = RemediationWorkflow(
        RuleBasedClassifier(source_path_prefix="src/main/java/"),
        gateway,
        fix_author=fix_author,
        action_timeout=2,
    )
    yield wf
    wf.close()
