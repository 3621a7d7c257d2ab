import logging
from email.message import EmailMessage
from typing import Dict, List

import aiosmtplib

from .. import config
from ..exceptions import ConfigurationError, EmailDeliveryError
from ..utils.email_templates import render_template

logger = logging.getLogger(__name__)


class EmailService:
    """SMTP mailer. Recipients of a bulk message only ever see themselves (BCC)."""

    def __init__(
        self,
        host=None,
        port=None,
        username=None,
        password=None,
        sender=None,
    ):
        self.host = host or config.SMTP_HOST
        self.port = port or config.SMTP_PORT
        self.username = username or config.SMTP_USER
        self.password = password or config.SMTP_PASS
        self.sender = sender or config.EMAIL_FROM

    async def send_emails(self, recipients: List[str], subject: str, html_body: str) -> None:
        if not (self.host and self.sender):
            raise ConfigurationError("SMTP_HOST and EMAIL_FROM must be set to send email")

        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = self.sender
        msg["Bcc"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML-capable email client.")
        msg.add_alternative(html_body, subtype="html")

        logger.info("Sending '%s' to %d recipient(s)", subject, len(recipients))
        try:
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=True,
            )
        except aiosmtplib.SMTPException as exc:
            raise EmailDeliveryError(f"SMTP delivery failed: {exc}") from exc

    async def send_simple(self, recipient: str, subject: str, html_body: str) -> None:
        await self.send_emails([recipient], subject, html_body)

    async def send_templated(self, recipient: str, subject: str, replacements: Dict[str, str]) -> None:
        await self.send_emails([recipient], subject, render_template(replacements))
