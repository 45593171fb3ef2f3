"""Out-of-band alerting; delivery failures are logged and never raised."""

from __future__ import annotations

import logging
import smtplib
from email.mime.text import MIMEText
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Fire-and-forget alert sink."""

    def alert(self, message: str) -> None:
        """Deliver message; must not raise."""


class LogNotifier:
    """Fallback notifier that only writes alerts to the log."""

    def alert(self, message: str) -> None:
        logger.warning("alert | %s", message.strip())


class EmailNotifier:
    """SMTP notifier using STARTTLS."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        sender: str,
        password: str,
        recipient: str,
        subject: str = "Trading alert",
        timeout: int = 20,
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.sender = sender
        self.password = password
        self.recipient = recipient
        self.subject = subject
        self.timeout = timeout

    def alert(self, message: str) -> None:
        msg = MIMEText(message.strip(), "plain", "utf-8")
        msg["Subject"] = self.subject
        msg["From"] = self.sender
        msg["To"] = self.recipient
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                server.login(self.sender, self.password)
                server.sendmail(self.sender, [self.recipient], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("alert | email delivery failed | %s", exc)
            return
        logger.info("alert | email sent to %s", self.recipient)
