# Overview: Outbound notifications (supplier PO mail) behind one send(to, subject, body) interface.

from __future__ import annotations

import smtplib
import threading
from email.mime.text import MIMEText
from email.utils import formataddr

from flask import current_app
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, To


class NotificationError(Exception):
    """Raised by a provider when delivery fails."""
    pass


class Notifier:
    """Delivery interface. Providers are built once per app by build_notifier()."""

    def send(self, to: str, subject: str, body: str) -> None:
        raise NotImplementedError


class ConsoleNotifier(Notifier):
    """Development provider: writes the message to the app log."""

    def send(self, to: str, subject: str, body: str) -> None:
        current_app.logger.info("EMAIL (console provider) to=%s subject=%s\n%s", to, subject, body)


class SmtpNotifier(Notifier):
    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: str,
        password: str,
        from_email: str,
        from_name: str,
        timeout: int = 15,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout

    def send(self, to: str, subject: str, body: str) -> None:
        if not self.host:
            raise NotificationError("SMTP host is not configured")

        message = MIMEText(body, "plain", "utf-8")
        message["Subject"] = subject
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = to

        try:
            # Port 465 is implicit TLS; anything else upgrades with STARTTLS
            if self.port == 465:
                client = smtplib.SMTP_SSL(host=self.host, port=self.port, timeout=self.timeout)
            else:
                client = smtplib.SMTP(host=self.host, port=self.port, timeout=self.timeout)

            with client:
                if self.port != 465:
                    client.starttls()
                if self.username:
                    client.login(self.username, self.password)
                client.sendmail(self.from_email, [to], message.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(str(exc)) from exc


class SendGridNotifier(Notifier):
    def __init__(self, *, api_key: str, from_email: str, from_name: str):
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name

    def send(self, to: str, subject: str, body: str) -> None:
        if not self.api_key:
            raise NotificationError("SENDGRID_API_KEY is not configured")

        message = Mail(
            from_email=Email(self.from_email, self.from_name),
            to_emails=To(to),
            subject=subject,
        )
        message.add_content(Content("text/plain", body))

        try:
            response = SendGridAPIClient(self.api_key).send(message)
        except Exception as exc:
            raise NotificationError(str(exc)) from exc
        if response.status_code >= 400:
            raise NotificationError(f"SendGrid error status: {response.status_code}")


def build_notifier(config) -> Notifier:
    """Resolve the mail transport once from configuration."""
    provider = (config.get("MAIL_PROVIDER") or "console").lower()
    if provider == "console":
        return ConsoleNotifier()
    if provider == "smtp":
        return SmtpNotifier(
            host=config.get("SMTP_HOST"),
            port=int(config.get("SMTP_PORT") or 465),
            username=config.get("SMTP_USERNAME") or "",
            password=config.get("SMTP_PASSWORD") or "",
            from_email=config.get("MAIL_FROM"),
            from_name=config.get("MAIL_FROM_NAME"),
            timeout=int(config.get("SMTP_TIMEOUT_SECONDS") or 15),
        )
    if provider == "sendgrid":
        return SendGridNotifier(
            api_key=config.get("SENDGRID_API_KEY") or "",
            from_email=config.get("MAIL_FROM"),
            from_name=config.get("MAIL_FROM_NAME"),
        )
    raise ValueError(f"Unsupported MAIL_PROVIDER: {provider}")


def dispatch(to: str, subject: str, body: str) -> threading.Thread | None:
    """
    Best-effort delivery, called after the business transaction committed.

    Failures are logged and never raised. With NOTIFICATIONS_ASYNC the send
    runs on a daemon thread and the thread is returned.
    """
    app = current_app._get_current_object()
    notifier = app.extensions["notifier"]

    def _deliver():
        with app.app_context():
            try:
                notifier.send(to, subject, body)
            except Exception:
                app.logger.exception("Failed to send notification to %s (%s)", to, subject)

    if not app.config.get("NOTIFICATIONS_ASYNC", True):
        _deliver()
        return None

    thread = threading.Thread(target=_deliver, name="notification", daemon=True)
    thread.start()
    return thread
