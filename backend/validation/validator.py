"""
Field-keyed validation error collector.

Checks accumulate into a single map so one response can report every
violation at once instead of failing on the first.
"""

import re
from collections.abc import Hashable, Iterable
from typing import Any

EMAIL_RX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


class ValidationFailedError(Exception):
    """Raised by handlers to turn a non-empty validator into a 422 response."""

    def __init__(self, errors: dict[str, str]):
        super().__init__(f"{len(errors)} field(s) failed validation")
        self.errors = dict(errors)


class Validator:
    def __init__(self):
        self.errors: dict[str, str] = {}

    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        """Record a message for key unless one is already recorded."""
        self.errors.setdefault(key, message)

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)

    def raise_if_invalid(self) -> None:
        if self.errors:
            raise ValidationFailedError(self.errors)


def permitted_value(value: Any, *permitted: Any) -> bool:
    return value in permitted


def matches(value: str, rx: re.Pattern) -> bool:
    return rx.match(value) is not None


def unique(values: Iterable[Hashable]) -> bool:
    items = list(values)
    return len(set(items)) == len(items)
