import smtplib

import pytest

from backend.config import Settings
from backend.services.mailer import Mailer, TemplateCatalog


class FakeTransport:
    """Transport that fails the first `failures` sends, then records messages."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.attempts = 0
        self.sent = []

    def send(self, message) -> None:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise smtplib.SMTPServerDisconnected(f"connection lost (attempt {self.attempts})")
        self.sent.append(message)


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def test_settings():
    return Settings(environment="testing", SMTP_VERIFY_ON_STARTUP=False)


@pytest.fixture
def make_mailer(recording_sleep):
    def _make(transport, sender: str = "Greenlight <no-reply@example.com>", **kwargs):
        return Mailer(transport, sender, TemplateCatalog(), sleep=recording_sleep, **kwargs)

    return _make


@pytest.fixture
def make_transport():
    return FakeTransport
