"""Email delivery of production results."""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Optional, Protocol

from app.schemas import ProductionResult
from notify.render import build_subject, render_html, render_text
from settings import Settings, missing_notification_settings

logger = logging.getLogger(__name__)


class NotificationError(RuntimeError):
    """Raised when a result cannot be delivered."""


class NotifierUnavailable(NotificationError):
    """Raised when delivery is requested but no notifier is configured."""


class Notifier(Protocol):
    def send(self, result: ProductionResult) -> None: ...


@dataclass(frozen=True)
class SmtpConfig:
    host: str
    port: int
    sender: str
    recipient: str
    password: str
    starttls: bool = False
    offset_seconds: int = 0
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpConfig":
        missing = missing_notification_settings(settings)
        if missing:
            raise NotificationError(
                f"Email delivery is not configured; missing: {', '.join(missing)}"
            )
        assert settings.sender_email and settings.recipient_email and settings.smtp_password
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.sender_email,
            recipient=settings.recipient_email,
            password=settings.smtp_password,
            starttls=settings.smtp_starttls,
            offset_seconds=settings.timezone_offset_seconds,
        )


def build_message(result: ProductionResult, config: SmtpConfig) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["Subject"] = build_subject(result)
    message["From"] = config.sender
    message["To"] = config.recipient
    message["Date"] = formatdate(localtime=False)
    message["Message-ID"] = make_msgid()
    message.attach(MIMEText(render_text(result, config.offset_seconds), "plain", "utf-8"))
    message.attach(MIMEText(render_html(result, config.offset_seconds), "html", "utf-8"))
    return message


class SmtpNotifier:
    """Sends each result as a multipart email to a single recipient."""

    def __init__(self, config: SmtpConfig) -> None:
        self.config = config

    def send(self, result: ProductionResult) -> None:
        message = build_message(result, self.config)
        context = ssl.create_default_context()
        try:
            if self.config.starttls:
                with smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout) as client:
                    client.starttls(context=context)
                    client.login(self.config.sender, self.config.password)
                    client.send_message(message)
            else:
                with smtplib.SMTP_SSL(
                    self.config.host, self.config.port, timeout=self.config.timeout, context=context
                ) as client:
                    client.login(self.config.sender, self.config.password)
                    client.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "Email delivery failed",
                extra={"window_label": result.window_label, "reason": str(exc)},
            )
            raise NotificationError(f"Email delivery failed: {exc}") from exc

        logger.info(
            "Production report sent",
            extra={
                "window_label": result.window_label,
                "recipient": self.config.recipient,
                "status": result.status.value,
            },
        )


def build_notifier(settings: Settings) -> Optional[SmtpNotifier]:
    """Return an SMTP notifier, or ``None`` when credentials are incomplete."""
    if missing_notification_settings(settings):
        return None
    return SmtpNotifier(SmtpConfig.from_settings(settings))
