# Overview: Pytest coverage for mail transport selection and best-effort dispatch.

import smtplib

import pytest
from app.services import notification_service
from app.services.notification_service import (
    ConsoleNotifier,
    NotificationError,
    SendGridNotifier,
    SmtpNotifier,
    build_notifier,
    dispatch,
)


class TestBuildNotifier:

    def test_console(self):
        assert isinstance(build_notifier({"MAIL_PROVIDER": "console"}), ConsoleNotifier)

    def test_smtp(self):
        notifier = build_notifier({
            "MAIL_PROVIDER": "SMTP",
            "SMTP_HOST": "smtp.test",
            "SMTP_PORT": "587",
            "MAIL_FROM": "shop@test",
            "MAIL_FROM_NAME": "Shop",
        })
        assert isinstance(notifier, SmtpNotifier)
        assert notifier.port == 587
        assert notifier.timeout == 15

    def test_sendgrid(self):
        notifier = build_notifier({"MAIL_PROVIDER": "sendgrid", "SENDGRID_API_KEY": "SG.key", "MAIL_FROM": "a@b.c"})
        assert isinstance(notifier, SendGridNotifier)

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            build_notifier({"MAIL_PROVIDER": "pigeon"})


class TestProviders:

    def test_sendgrid_without_key_fails(self):
        notifier = SendGridNotifier(api_key="", from_email="a@b.c", from_name="Shop")
        with pytest.raises(NotificationError):
            notifier.send("supplier@test", "PO", "body")

    def test_smtp_starttls_on_submission_port(self, monkeypatch):
        calls = []

        class FakeSMTP:
            def __init__(self, host, port, timeout):
                calls.append(("connect", host, port))

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def starttls(self):
                calls.append(("starttls",))

            def login(self, username, password):
                calls.append(("login", username))

            def sendmail(self, from_addr, to_addrs, message):
                calls.append(("sendmail", from_addr, tuple(to_addrs)))

        monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
        notifier = SmtpNotifier(
            host="smtp.test", port=587, username="user", password="pw",
            from_email="shop@test", from_name="Shop",
        )
        notifier.send("supplier@test", "PO #1", "hello")

        assert calls == [
            ("connect", "smtp.test", 587),
            ("starttls",),
            ("login", "user"),
            ("sendmail", "shop@test", ("supplier@test",)),
        ]

    def test_smtp_errors_are_wrapped(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise OSError("connection refused")

        monkeypatch.setattr(smtplib, "SMTP_SSL", refuse)
        notifier = SmtpNotifier(
            host="smtp.test", port=465, username="", password="",
            from_email="shop@test", from_name="Shop",
        )
        with pytest.raises(NotificationError):
            notifier.send("supplier@test", "PO #1", "hello")


class TestDispatch:

    def test_synchronous_delivery(self, app, notifier):
        assert dispatch("a@test", "Hi", "Body") is None
        assert notifier.sent == [{"to": "a@test", "subject": "Hi", "body": "Body"}]

    def test_failures_are_swallowed(self, app, monkeypatch):
        class Broken(ConsoleNotifier):
            def send(self, to, subject, body):
                raise NotificationError("down")

        monkeypatch.setitem(app.extensions, "notifier", Broken())
        dispatch("a@test", "Hi", "Body")

    def test_async_delivery_runs_on_a_thread(self, app, notifier, monkeypatch):
        monkeypatch.setitem(app.config, "NOTIFICATIONS_ASYNC", True)

        thread = notification_service.dispatch("b@test", "Hi", "Body")
        thread.join(timeout=5)

        assert notifier.sent[0]["to"] == "b@test"
