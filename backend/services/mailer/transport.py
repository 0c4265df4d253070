"""
SMTP submission transport.
"""

import smtplib
import ssl
from email.message import EmailMessage
from typing import Protocol

from backend.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class Transport(Protocol):
    def send(self, message: EmailMessage) -> None: ...


class SMTPTransport:
    """
    Delivers messages over SMTP with username/password auth.

    A fresh connection is opened per message so the transport can be used
    from any number of background threads at once.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str | None = None,
        password: str | None = None,
        *,
        timeout: float = 5.0,
        starttls: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self.starttls = starttls

    def _connect(self) -> smtplib.SMTP:
        client = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            client.ehlo()
            if self.starttls and client.has_extn("starttls"):
                client.starttls(context=ssl.create_default_context())
                client.ehlo()
            if self.username:
                client.login(self.username, self.password or "")
        except BaseException:
            client.close()
            raise
        return client

    def send(self, message: EmailMessage) -> None:
        with self._connect() as client:
            client.send_message(message)

    def verify(self) -> None:
        """Dial and authenticate once; raises the underlying error on failure."""
        with self._connect() as client:
            client.noop()
        logger.info("SMTP connection verified", host=self.host, port=self.port)
