"""
Tests for templated mail delivery and its retry policy.
"""

import smtplib

import pytest

from backend.infrastructure.background.supervisor import TaskSupervisor
from backend.services.mailer import (
    InvalidAddressError,
    MailDeliveryError,
    MailMessage,
    TemplateRenderError,
)

WELCOME_DATA = {"app_name": "Greenlight", "user_id": 42}


def test_send_delivers_rendered_message(fake_transport, make_mailer, recording_sleep):
    mailer = make_mailer(fake_transport)

    mailer.send("alice@example.com", "user_welcome.tmpl", WELCOME_DATA)

    assert fake_transport.attempts == 1
    assert recording_sleep.calls == []

    message = fake_transport.sent[0]
    assert message["To"] == "alice@example.com"
    assert message["From"] == "Greenlight <no-reply@example.com>"
    assert message["Subject"] == "Welcome to Greenlight!"

    plain = message.get_body(preferencelist=("plain",)).get_content()
    html = message.get_body(preferencelist=("html",)).get_content()
    assert "your user ID number is 42" in plain
    assert "<p>For future reference, your user ID number is 42.</p>" in html


def test_send_message_uses_message_fields(fake_transport, make_mailer):
    mailer = make_mailer(fake_transport)

    mailer.send_message(MailMessage("bob@example.com", "user_welcome.tmpl", WELCOME_DATA))

    assert fake_transport.sent[0]["To"] == "bob@example.com"


def test_two_failures_then_success(make_transport, make_mailer, recording_sleep):
    transport = make_transport(failures=2)
    mailer = make_mailer(transport)

    mailer.send("alice@example.com", "user_welcome.tmpl", WELCOME_DATA)

    assert transport.attempts == 3
    assert len(transport.sent) == 1
    assert recording_sleep.calls == [30.0, 30.0]


def test_gives_up_after_three_attempts(make_transport, make_mailer, recording_sleep):
    transport = make_transport(failures=10)
    mailer = make_mailer(transport)

    with pytest.raises(MailDeliveryError) as excinfo:
        mailer.send("alice@example.com", "user_welcome.tmpl", WELCOME_DATA)

    assert transport.attempts == 3
    assert transport.sent == []
    # two backoff intervals, none after the final attempt
    assert len(recording_sleep.calls) == 2
    assert recording_sleep.total >= 60.0

    error = excinfo.value
    assert error.attempts == 3
    assert isinstance(error.last_error, smtplib.SMTPServerDisconnected)
    assert "attempt 3" in str(error.last_error)
    assert error.__cause__ is error.last_error


def test_missing_template_is_not_retried(fake_transport, make_mailer, recording_sleep):
    mailer = make_mailer(fake_transport)

    with pytest.raises(TemplateRenderError):
        mailer.send("alice@example.com", "does_not_exist.tmpl", WELCOME_DATA)

    assert fake_transport.attempts == 0
    assert recording_sleep.calls == []


def test_missing_template_data_is_not_retried(fake_transport, make_mailer):
    mailer = make_mailer(fake_transport)

    with pytest.raises(TemplateRenderError):
        mailer.send("alice@example.com", "user_welcome.tmpl", {"app_name": "Greenlight"})

    assert fake_transport.attempts == 0


@pytest.mark.parametrize("recipient", ["not-an-address", "alice@", ""])
def test_malformed_recipient_is_not_retried(fake_transport, make_mailer, recording_sleep, recipient):
    mailer = make_mailer(fake_transport)

    with pytest.raises(InvalidAddressError) as excinfo:
        mailer.send(recipient, "user_welcome.tmpl", WELCOME_DATA)

    assert excinfo.value.header == "To"
    assert fake_transport.attempts == 0
    assert recording_sleep.calls == []


def test_malformed_sender_is_not_retried(fake_transport, make_mailer):
    mailer = make_mailer(fake_transport, sender="Greenlight <nobody>")

    with pytest.raises(InvalidAddressError) as excinfo:
        mailer.send("alice@example.com", "user_welcome.tmpl", WELCOME_DATA)

    assert excinfo.value.header == "From"
    assert fake_transport.attempts == 0


def test_non_smtp_transport_error_is_retried(make_mailer, recording_sleep):
    class FlakyProviderTransport:
        attempts = 0

        def send(self, message):
            self.attempts += 1
            if self.attempts < 3:
                raise RuntimeError("provider 503")

    transport = FlakyProviderTransport()
    mailer = make_mailer(transport)

    mailer.send("alice@example.com", "user_welcome.tmpl", WELCOME_DATA)

    assert transport.attempts == 3
    assert recording_sleep.calls == [30.0, 30.0]


def test_non_smtp_transport_error_exhausts_into_delivery_error(make_mailer, recording_sleep):
    class DownProviderTransport:
        attempts = 0

        def send(self, message):
            self.attempts += 1
            raise RuntimeError("provider 503")

    transport = DownProviderTransport()
    mailer = make_mailer(transport)

    with pytest.raises(MailDeliveryError) as excinfo:
        mailer.send("alice@example.com", "user_welcome.tmpl", WELCOME_DATA)

    assert transport.attempts == 3
    assert excinfo.value.attempts == 3
    assert isinstance(excinfo.value.last_error, RuntimeError)
    assert excinfo.value.__cause__ is excinfo.value.last_error


def test_custom_attempts_and_backoff(make_transport, make_mailer, recording_sleep):
    transport = make_transport(failures=10)
    mailer = make_mailer(transport, max_attempts=5, backoff=1.5)

    with pytest.raises(MailDeliveryError):
        mailer.send("alice@example.com", "user_welcome.tmpl", WELCOME_DATA)

    assert transport.attempts == 5
    assert recording_sleep.calls == [1.5] * 4


def test_max_attempts_must_be_positive(fake_transport, make_mailer):
    with pytest.raises(ValueError):
        make_mailer(fake_transport, max_attempts=0)


def test_delivery_failure_inside_supervisor_is_only_logged(make_transport, make_mailer):
    transport = make_transport(failures=10)
    mailer = make_mailer(transport)
    supervisor = TaskSupervisor()

    supervisor.submit(lambda: mailer.send("alice@example.com", "user_welcome.tmpl", WELCOME_DATA))

    assert supervisor.wait(timeout=5) is True
    assert transport.attempts == 3
    assert supervisor.stats()["failed"] == 1
