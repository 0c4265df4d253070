"""
Query string and path parameter helpers.

None of the query readers raise: bad input is recorded in the caller's
Validator and the default is returned, so a handler can collect every
problem before responding.
"""

import re
from collections.abc import Mapping

from starlette.requests import Request

from backend.validation.validator import Validator

# int() alone would also accept surrounding whitespace and underscores
_INTEGER = re.compile(r"[+-]?[0-9]+")


class InvalidIDError(ValueError):
    """Raised when the id path parameter is not a positive integer."""

    def __init__(self):
        super().__init__("invalid id parameter")


def read_id_param(request: Request) -> int:
    raw = str(request.path_params.get("id", ""))
    if not _INTEGER.fullmatch(raw) or int(raw) < 1:
        raise InvalidIDError()
    return int(raw)


def read_string(qs: Mapping[str, str], key: str, default: str) -> str:
    """Return the query value for key, or default when missing or empty."""
    value = qs.get(key, "")
    if not value:
        return default
    return value


def read_csv(qs: Mapping[str, str], key: str, default: list[str]) -> list[str]:
    """Split the query value for key on commas, or return default."""
    value = qs.get(key, "")
    if not value:
        return default
    return value.split(",")


def read_int(qs: Mapping[str, str], key: str, default: int, v: Validator) -> int:
    """
    Read an integer query value.

    On a parse failure the message is recorded against key in v and the
    default is returned.
    """
    value = qs.get(key, "")
    if not value:
        return default

    if not _INTEGER.fullmatch(value):
        v.add_error(key, "must be an integer value")
        return default
    return int(value)
