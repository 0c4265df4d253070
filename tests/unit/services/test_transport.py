import smtplib
from email.message import EmailMessage
from unittest.mock import patch

import pytest

from backend.services.mailer import SMTPTransport


def _message() -> EmailMessage:
    message = EmailMessage()
    message["To"] = "alice@example.com"
    message["From"] = "no-reply@example.com"
    message["Subject"] = "Hello"
    message.set_content("hello")
    return message


@pytest.fixture
def smtp_client():
    with patch("backend.services.mailer.transport.smtplib.SMTP") as smtp_cls:
        client = smtp_cls.return_value
        client.__enter__.return_value = client
        client.has_extn.return_value = False
        yield smtp_cls, client


def test_send_authenticates_and_sends(smtp_client):
    smtp_cls, client = smtp_client
    transport = SMTPTransport("smtp.example.com", 587, "user", "secret", timeout=5.0)
    message = _message()

    transport.send(message)

    smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=5.0)
    client.login.assert_called_once_with("user", "secret")
    client.send_message.assert_called_once_with(message)
    client.starttls.assert_not_called()
    client.__exit__.assert_called_once()


def test_send_upgrades_to_tls_when_offered(smtp_client):
    _, client = smtp_client
    client.has_extn.return_value = True

    SMTPTransport("smtp.example.com", 587, "user", "secret").send(_message())

    client.starttls.assert_called_once()
    assert client.ehlo.call_count == 2


def test_send_without_credentials_skips_login(smtp_client):
    _, client = smtp_client

    SMTPTransport("localhost", 25).send(_message())

    client.login.assert_not_called()


def test_failed_login_closes_connection(smtp_client):
    _, client = smtp_client
    client.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

    with pytest.raises(smtplib.SMTPAuthenticationError):
        SMTPTransport("smtp.example.com", 587, "user", "wrong").send(_message())

    client.close.assert_called_once()
    client.send_message.assert_not_called()


def test_connection_refused_propagates(smtp_client):
    smtp_cls, _ = smtp_client
    smtp_cls.side_effect = ConnectionRefusedError("refused")

    with pytest.raises(OSError):
        SMTPTransport("smtp.example.com", 587).send(_message())


def test_verify_dials_once(smtp_client):
    smtp_cls, client = smtp_client

    SMTPTransport("smtp.example.com", 587, "user", "secret").verify()

    smtp_cls.assert_called_once()
    client.noop.assert_called_once()
