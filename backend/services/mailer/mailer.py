"""
Templated mail dispatch with bounded retries.

Mailer.send() blocks for the whole retry sequence (up to two 30 second
waits with the defaults), so request handlers should run it through the
TaskSupervisor rather than inline.
"""

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr, parseaddr
from typing import Any

from pydantic import validate_email
from pydantic_core import PydanticCustomError

from backend.infrastructure.observability.logging import get_logger
from backend.services.mailer.catalog import RenderedMail, TemplateCatalog
from backend.services.mailer.errors import InvalidAddressError, MailDeliveryError
from backend.services.mailer.transport import Transport

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 30.0


@dataclass(frozen=True)
class MailMessage:
    recipient: str
    template_file: str
    data: Mapping[str, Any] = field(default_factory=dict)


def _format_address(header: str, value: str) -> str:
    """Validate value and return it in header form, keeping any display name."""
    try:
        _, address = validate_email(value)
    except PydanticCustomError as e:
        raise InvalidAddressError(header, value, e.message()) from e
    name, _ = parseaddr(value)
    return formataddr((name, address))


class Mailer:
    """
    Renders a named template and delivers it through a transport.

    Delivery is attempted up to max_attempts times with a fixed backoff
    between attempts. Rendering and address errors fail immediately.
    """

    def __init__(
        self,
        transport: Transport,
        sender: str,
        templates: TemplateCatalog,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff: float = DEFAULT_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.transport = transport
        self.sender = sender
        self.templates = templates
        self.max_attempts = max_attempts
        self.backoff = backoff
        self._sleep = sleep

    def send(self, recipient: str, template_file: str, data: Mapping[str, Any] | None = None) -> None:
        """
        Render template_file with data and deliver it to recipient.

        Raises:
            TemplateRenderError: the template could not be rendered.
            InvalidAddressError: recipient or sender is malformed.
            MailDeliveryError: every attempt failed; chained from the last error.
        """
        rendered = self.templates.render(template_file, data or {})
        message = self._build_message(recipient, rendered)
        self._deliver(message, template_file)

    def send_message(self, message: MailMessage) -> None:
        self.send(message.recipient, message.template_file, message.data)

    def _build_message(self, recipient: str, rendered: RenderedMail) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = rendered.subject
        message["To"] = _format_address("To", recipient)
        message["From"] = _format_address("From", self.sender)
        message.set_content(rendered.plain_body)
        message.add_alternative(rendered.html_body, subtype="html")
        return message

    def _deliver(self, message: EmailMessage, template_file: str) -> None:
        last_error: BaseException | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                self.transport.send(message)
            except Exception as e:
                last_error = e
                logger.warning(
                    "Mail delivery attempt failed",
                    template=template_file,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if attempt < self.max_attempts:
                    self._sleep(self.backoff)
                continue

            logger.info("Mail delivered", template=template_file, attempt=attempt)
            return

        logger.error(
            "Mail delivery gave up",
            template=template_file,
            attempts=self.max_attempts,
            error=str(last_error),
        )
        raise MailDeliveryError(self.max_attempts, last_error) from last_error
