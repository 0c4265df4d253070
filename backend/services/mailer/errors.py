class MailerError(Exception):
    """Base class for mail dispatch failures."""


class TemplateRenderError(MailerError):
    """Template missing, incomplete or failing to render. Never retried."""

    def __init__(self, template_file: str, message: str):
        super().__init__(f"template {template_file!r}: {message}")
        self.template_file = template_file


class InvalidAddressError(MailerError):
    """A To/From address could not be parsed. Never retried."""

    def __init__(self, header: str, address: str, reason: str):
        super().__init__(f"invalid {header} address {address!r}: {reason}")
        self.header = header
        self.address = address


class MailDeliveryError(MailerError):
    """Every delivery attempt failed; last_error is the final transport error."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"mail delivery failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
