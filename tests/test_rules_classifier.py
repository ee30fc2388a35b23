"""
Tests for the rule-based classifier.
"""
from samples import (
    INFO_LOG,
    JAVA_NPE_LOG,
    NPE_ALERT,
    OOM_LOG,
    PYTHON_KEYERROR_LOG,
    SECRET_ALERT,
    SECRET_LOG,
)

from hotfix_sentinel.classification import RuleBasedClassifier
from hotfix_sentinel.classification.rules import find_java_frame, find_python_frame
from hotfix_sentinel.models import CodeFixable, ConfigurationIssue, Evidence, NoIncident, Unsafe


def _classify(*texts, prefix=""):
    return RuleBasedClassifier(source_path_prefix=prefix).classify(
        [Evidence.from_text(text) for text in texts]
    )


def test_empty_batch_is_no_incident() -> None:
    assert isinstance(RuleBasedClassifier().classify([]), NoIncident)


def test_info_logs_are_no_incident() -> None:
    assert isinstance(_classify(INFO_LOG), NoIncident)


def test_java_npe_is_code_fixable() -> None:
    """Test a Java NPE with an application frame targets that file."""
    verdict = _classify(JAVA_NPE_LOG, prefix="src/main/java/")

    assert isinstance(verdict, CodeFixable)
    assert verdict.file_path_hint == "src/main/java/com/shop/orders/OrderService.java"
    assert verdict.summary == "NullPointerException at OrderService.java:42"
    assert "NullPointerException" in verdict.root_cause


def test_python_key_error_is_code_fixable() -> None:
    """Test library frames are skipped in Python tracebacks."""
    verdict = _classify(PYTHON_KEYERROR_LOG)

    assert isinstance(verdict, CodeFixable)
    assert verdict.file_path_hint == "app/handlers.py"
    assert verdict.summary == "KeyError at handlers.py:17"


def test_secret_failure_is_configuration_issue() -> None:
    verdict = _classify(SECRET_LOG)

    assert isinstance(verdict, ConfigurationIssue)
    assert verdict.summary == "Configuration issue: secret manager access failure"
    assert "db-password" in verdict.root_cause


def test_configuration_wins_over_fixable_exception() -> None:
    """Test configuration symptoms are never treated as code defects."""
    verdict = _classify(
        JAVA_NPE_LOG,
        "ERROR Required environment variable PAYMENT_API_URL is not set",
    )

    assert isinstance(verdict, ConfigurationIssue)
    assert verdict.summary == "Configuration issue: missing environment variable"


def test_unknown_exception_is_unsafe() -> None:
    verdict = _classify(OOM_LOG)

    assert isinstance(verdict, Unsafe)
    assert "OutOfMemoryError" in verdict.reason


def test_fixable_exception_without_frame_is_unsafe() -> None:
    verdict = _classify("ERROR java.lang.NullPointerException")

    assert isinstance(verdict, Unsafe)
    assert "without an application stack frame" in verdict.reason


def test_error_without_exception_is_unsafe() -> None:
    verdict = _classify("ERROR payment batch did not complete")

    assert isinstance(verdict, Unsafe)


def test_find_java_frame_skips_library_packages() -> None:
    text = (
        "java.lang.NumberFormatException: For input string: \"abc\"\n"
        "\tat java.lang.Integer.parseInt(Integer.java:652)\n"
        "\tat com.shop.cart.CartParser$Line.qty(CartParser.java:19)"
    )

    assert find_java_frame(text) == ("com/shop/cart/CartParser.java", 19)


def test_find_python_frame_takes_innermost_application_frame() -> None:
    text = (
        'File "/srv/app/main.py", line 3, in run\n'
        'File "/srv/app/pricing.py", line 11, in total\n'
        'File "/usr/lib/python3.11/decimal.py", line 9, in __truediv__'
    )

    assert find_python_frame(text) == ("srv/app/pricing.py", 11)


def test_prefix_not_duplicated() -> None:
    """Test paths already under the prefix are left alone."""
    classifier = RuleBasedClassifier(source_path_prefix="app/")

    verdict = classifier.classify([Evidence.from_text(PYTHON_KEYERROR_LOG)])

    assert verdict.file_path_hint == "app/handlers.py"


def test_secret_alert_without_error_level() -> None:
    """Test a configuration symptom counts as an incident without an ERROR token."""
    verdict = _classify(SECRET_ALERT)

    assert isinstance(verdict, ConfigurationIssue)
    assert verdict.summary == "Configuration issue: secret manager access failure"
    assert verdict.root_cause == SECRET_ALERT


def test_npe_alert_without_stack_trace() -> None:
    verdict = _classify(NPE_ALERT, prefix="src/main/java/")

    assert isinstance(verdict, CodeFixable)
    assert verdict.file_path_hint == "src/main/java/OrderService.java"
    assert verdict.summary == "NullPointerException at OrderService.java:42"
