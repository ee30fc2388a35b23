"""
SMTP notifier.

One message per recipient over a single STARTTLS session, so one bad
address does not block the others.
"""

import html
import logging
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, List, Optional

from ..constants import DEFAULT_SMTP_PORT
from ..security import sanitize_error
from .base import NOTIFICATION_SUCCESS, GatewayResult, NotifierGateway, notification_result

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")


def html_to_text(body: str) -> str:
    """Plain-text fallback for an HTML body."""
    text = re.sub(r"<br\s*/?>|</p>|</li>|</tr>|</h\d>", "\n", body, flags=re.IGNORECASE)
    text = html.unescape(_TAG_RE.sub("", text))
    return "\n".join(line.strip() for line in text.splitlines() if line.strip())


class SmtpNotifier(NotifierGateway):
    """
    Email notifier using SMTP.

    Args:
        host: SMTP server hostname
        port: SMTP server port
        from_addr: Sender email address
        recipients: Recipient email addresses
        username: Optional SMTP username
        password: Optional SMTP password
        use_tls: Whether to issue STARTTLS
        timeout: Socket timeout in seconds
    """

    def __init__(
        self,
        host: str,
        from_addr: str,
        recipients: List[str],
        port: int = DEFAULT_SMTP_PORT,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 30
    ):
        self.host = host
        self.port = port
        self.from_addr = from_addr
        self.recipients = list(recipients)
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, recipient: str, subject: str, body: str) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = self.from_addr
        msg['To'] = recipient
        msg.attach(MIMEText(html_to_text(body), 'plain'))
        msg.attach(MIMEText(body, 'html'))
        return msg

    def send_notification(self, subject: str, body: str) -> GatewayResult:
        results: Dict[str, str] = {}

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)

                for recipient in self.recipients:
                    try:
                        server.send_message(self.build_message(recipient, subject, body))
                        results[recipient] = NOTIFICATION_SUCCESS
                        logger.debug(f"Notification sent to {recipient}")
                    except smtplib.SMTPException as e:
                        results[recipient] = f"FAILED: {sanitize_error(e)}"
                        logger.warning(f"Notification to {recipient} failed: {sanitize_error(e)}")

        except (smtplib.SMTPException, OSError) as e:
            reason = sanitize_error(e)
            logger.error(f"SMTP session with {self.host}:{self.port} failed: {reason}")
            for recipient in self.recipients:
                results.setdefault(recipient, f"FAILED: {reason}")

        return notification_result(results)
