from backend.services.mailer.catalog import RenderedMail, TemplateCatalog
from backend.services.mailer.errors import (
    InvalidAddressError,
    MailDeliveryError,
    MailerError,
    TemplateRenderError,
)
from backend.services.mailer.mailer import MailMessage, Mailer
from backend.services.mailer.transport import SMTPTransport, Transport

__all__ = [
    "InvalidAddressError",
    "MailDeliveryError",
    "MailMessage",
    "Mailer",
    "MailerError",
    "RenderedMail",
    "SMTPTransport",
    "TemplateCatalog",
    "TemplateRenderError",
    "Transport",
]
