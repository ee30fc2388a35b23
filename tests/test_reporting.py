"""
Tests for change request, issue and notification wording.
"""
from hotfix_sentinel.models import CodeFixable, ConfigurationIssue, Unsafe
from hotfix_sentinel.workflow import reporting

FIXABLE = CodeFixable(
    file_path_hint="src/main/java/com/shop/orders/OrderService.java",
    summary="NullPointerException at OrderService.java:42",
    root_cause="coupon is null",
)
CONFIG = ConfigurationIssue(summary="Secret cannot be read", root_cause="PERMISSION_DENIED")
UNSAFE = Unsafe(reason="OutOfMemoryError is not mechanically fixable")


def test_change_request_text() -> None:
    description = reporting.change_request_description("inc-1", FIXABLE, FIXABLE.file_path_hint, "Guard null")

    assert reporting.change_request_title(FIXABLE) == "Hotfix: NullPointerException at OrderService.java:42"
    for heading in ("## Incident summary", "## Root cause", "## Fix details", "## Impacted components"):
        assert heading in description
    assert "`src/main/java/com/shop/orders/OrderService.java`" in description
    assert "Guard null" in description


def test_issue_summary_prefixes() -> None:
    assert reporting.issue_summary(FIXABLE).startswith("[Hotfix] ")
    assert reporting.issue_summary(CONFIG) == "[Config] Secret cannot be read"
    assert reporting.issue_summary(UNSAFE) == "[Manual action required] OutOfMemoryError is not mechanically fixable"


def test_issue_description_for_code_fix() -> None:
    description = reporting.issue_description(
        "inc-1", FIXABLE, {"branch": "hotfix/abc", "change_request_url": "https://git.example.com/pull/3"}
    )

    assert "branch hotfix/abc" in description
    assert "Change request: https://git.example.com/pull/3" in description
    assert "\n\n" in description


def test_issue_description_for_unsafe() -> None:
    description = reporting.issue_description("inc-1", UNSAFE, {})

    assert "Manual intervention required" in description
    assert "did not modify any code" in description


def test_notification_subject() -> None:
    assert reporting.notification_subject(FIXABLE, "OPS-7") == (
        "[Production incident] Hotfix raised: NullPointerException at OrderService.java:42 (OPS-7)"
    )
    assert reporting.notification_subject(CONFIG, None) == (
        "[Production incident] Configuration incident: Secret cannot be read"
    )
    assert reporting.notification_subject(UNSAFE, "OPS-1").startswith(
        "[Production incident] Incident requires manual action"
    )


def test_notification_body_escapes_html() -> None:
    unsafe = Unsafe(reason="<script>alert(1)</script>")

    body = reporting.notification_body("inc-1", unsafe, {"issue_key": "OPS-2"})

    assert "<script>" not in body
    assert "&lt;script&gt;" in body
    assert "OPS-2" in body


def test_notification_body_links_change_request() -> None:
    url = "https://git.example.com/example/service/pull/1"

    body = reporting.notification_body("inc-1", FIXABLE, {"change_request_url": url})

    assert f'<a href="{url}">' in body
    assert "coupon is null" in body
