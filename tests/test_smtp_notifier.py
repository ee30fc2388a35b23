"""
Tests for the SMTP notifier.
"""
import smtplib
from unittest.mock import MagicMock, patch

from hotfix_sentinel.gateway import ErrorKind, SmtpNotifier
from hotfix_sentinel.gateway.smtp import html_to_text


def _notifier(**kwargs) -> SmtpNotifier:
    values = dict(
        host="smtp.acme.io",
        from_addr="sentinel@acme.io",
        recipients=["a@acme.io", "b@acme.io"],
        username="sentinel",
        password="pw",
    )
    values.update(kwargs)
    return SmtpNotifier(**values)


def _patched_smtp():
    patcher = patch("hotfix_sentinel.gateway.smtp.smtplib.SMTP")
    smtp_class = patcher.start()
    server = MagicMock()
    smtp_class.return_value.__enter__.return_value = server
    return patcher, smtp_class, server


def test_html_to_text() -> None:
    text = html_to_text("<h2>NPE &amp; crash</h2><p>line one<br>line two</p>")

    assert text.splitlines() == ["NPE & crash", "line one", "line two"]


def test_build_message_has_plain_and_html_parts() -> None:
    message = _notifier().build_message("a@acme.io", "Subject", "<p>Hello</p>")

    parts = message.get_payload()
    assert message["To"] == "a@acme.io"
    assert [p.get_content_type() for p in parts] == ["text/plain", "text/html"]


def test_send_to_all_recipients() -> None:
    """Test one message per recipient over a TLS session."""
    patcher, smtp_class, server = _patched_smtp()
    try:
        result = _notifier().send_notification("Subject", "<p>body</p>")
    finally:
        patcher.stop()

    assert result.success
    assert result.warning is None
    smtp_class.assert_called_once_with("smtp.acme.io", 587, timeout=30)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("sentinel", "pw")
    assert server.send_message.call_count == 2


def test_send_partial_failure_is_warning() -> None:
    patcher, _, server = _patched_smtp()
    server.send_message.side_effect = [
        None,
        smtplib.SMTPRecipientsRefused({"b@acme.io": (550, b"no such user")}),
    ]
    try:
        result = _notifier().send_notification("Subject", "<p>body</p>")
    finally:
        patcher.stop()

    assert result.success
    assert "b@acme.io" in result.warning
    assert result.payload["recipients"]["a@acme.io"] == "SUCCESS"
    assert result.payload["recipients"]["b@acme.io"].startswith("FAILED")


def test_send_session_failure_fails_everyone() -> None:
    """Test a connection failure marks every recipient failed."""
    patcher, smtp_class, _ = _patched_smtp()
    smtp_class.side_effect = ConnectionRefusedError("connection refused")
    try:
        result = _notifier().send_notification("Subject", "<p>body</p>")
    finally:
        patcher.stop()

    assert not result.success
    assert result.error_kind == ErrorKind.TRANSPORT_FAILURE
    assert set(result.payload["recipients"]) == {"a@acme.io", "b@acme.io"}


def test_send_without_tls_or_login() -> None:
    patcher, _, server = _patched_smtp()
    try:
        _notifier(use_tls=False, username=None, password=None).send_notification("s", "b")
    finally:
        patcher.stop()

    server.starttls.assert_not_called()
    server.login.assert_not_called()


def test_no_recipients_rejected() -> None:
    patcher, _, _ = _patched_smtp()
    try:
        result = _notifier(recipients=[]).send_notification("s", "b")
    finally:
        patcher.stop()

    assert result.error_kind == ErrorKind.REJECTED
