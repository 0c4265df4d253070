"""
JSON envelope encoding and strict request body decoding.

Responses are written as compact JSON objects followed by a newline.
Request bodies are decoded against pydantic shapes that forbid unknown
keys, and every failure is triaged into one of the DecodeError kinds so
handlers can return a message the client can act on.
"""

import json
import re
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from starlette.requests import Request
from starlette.responses import Response

MAX_BODY_BYTES = 1_048_576

Envelope = dict[str, Any]

ModelT = TypeVar("ModelT", bound=BaseModel)

_WHITESPACE = re.compile(r"[ \t\n\r]*")
_LITERALS = ("true", "false", "null")
_NUMBER_TAIL = re.compile(r"\.|[eE][-+]?")
_STRING_OR_CONSTANT = re.compile(r'"(?:[^"\\]|\\.)*"|(-?Infinity|NaN)', re.DOTALL)


class _NonStandardConstant(ValueError):
    pass


def _reject_constant(name: str) -> Any:
    raise _NonStandardConstant(name)


_decoder = json.JSONDecoder(parse_constant=_reject_constant)


class RequestBody(BaseModel):
    """
    Base class for request shapes.

    Shapes declare field types only; business rules belong in a Validator
    so they accumulate instead of aborting the decode.
    """

    model_config = ConfigDict(extra="forbid")


# =================================================================
# ENCODING
# =================================================================


class EnvelopeEncodeError(Exception):
    """Raised when a payload cannot be represented as JSON."""


def _encode_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def write_json(
    status: int,
    data: Mapping[str, Any],
    headers: Mapping[str, str] | None = None,
) -> Response:
    """
    Build a JSON response for the given envelope.

    Caller headers are applied first, so they can never replace the
    Content-Type set here.
    """
    try:
        body = json.dumps(
            data,
            default=_encode_default,
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError) as e:
        raise EnvelopeEncodeError(str(e)) from e

    response = Response(content=(body + "\n").encode("utf-8"), status_code=status)
    for key, value in (headers or {}).items():
        response.headers[key] = value
    response.headers["content-type"] = "application/json"
    return response


# =================================================================
# DECODING
# =================================================================


class DecodeErrorKind(str, Enum):
    MALFORMED_SYNTAX = "MalformedSyntax"
    UNEXPECTED_TERMINATION = "UnexpectedTermination"
    TYPE_MISMATCH = "TypeMismatch"
    EMPTY_BODY = "EmptyBody"
    UNKNOWN_FIELD = "UnknownField"
    TOO_LARGE = "TooLarge"
    TRAILING_CONTENT = "TrailingContent"


class DecodeError(Exception):
    """Base class for client-caused request body failures."""

    kind: DecodeErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedSyntaxError(DecodeError):
    kind = DecodeErrorKind.MALFORMED_SYNTAX

    def __init__(self, offset: int | None = None):
        if offset is None:
            message = "body contains badly-formed JSON"
        else:
            message = f"body contains badly-formed JSON (at character {offset})"
        super().__init__(message)
        self.offset = offset


class UnexpectedTerminationError(DecodeError):
    kind = DecodeErrorKind.UNEXPECTED_TERMINATION

    def __init__(self):
        super().__init__("body contains badly-formed JSON")


class TypeMismatchError(DecodeError):
    kind = DecodeErrorKind.TYPE_MISMATCH

    def __init__(self, field: str | None = None, *, missing: bool = False):
        if missing and field:
            message = f'body is missing required key "{field}"'
        elif field:
            message = f'body contains incorrect JSON type for field "{field}"'
        else:
            message = "body contains incorrect JSON type"
        super().__init__(message)
        self.field = field
        self.missing = missing


class EmptyBodyError(DecodeError):
    kind = DecodeErrorKind.EMPTY_BODY

    def __init__(self):
        super().__init__("body must not be empty")


class UnknownFieldError(DecodeError):
    kind = DecodeErrorKind.UNKNOWN_FIELD

    def __init__(self, field: str):
        super().__init__(f'body contains unknown key "{field}"')
        self.field = field


class BodyTooLargeError(DecodeError):
    kind = DecodeErrorKind.TOO_LARGE

    def __init__(self, limit: int):
        super().__init__(f"body must not be larger than {limit} bytes")
        self.limit = limit


class TrailingContentError(DecodeError):
    kind = DecodeErrorKind.TRAILING_CONTENT

    def __init__(self):
        super().__init__("body must contain a single JSON value")


class InvalidDestinationError(TypeError):
    """
    The decode target is not a strict pydantic model class.

    This is a bug in the calling handler, never a client error, so it is
    deliberately not a DecodeError.
    """


def _check_destination(shape: Any) -> None:
    if not (isinstance(shape, type) and issubclass(shape, BaseModel)):
        raise InvalidDestinationError(
            f"cannot decode JSON into {shape!r}: destination must be a pydantic model class"
        )
    if shape.model_config.get("extra") != "forbid":
        raise InvalidDestinationError(f"{shape.__name__} must forbid extra fields")


def _field_name(loc: tuple) -> str | None:
    # list indices are not part of the field path
    parts = [str(part) for part in loc if isinstance(part, str)]
    return ".".join(parts) or None


def _classify_validation_error(exc: ValidationError) -> DecodeError:
    errors = exc.errors(include_url=False)

    for error in errors:
        if error["type"] == "extra_forbidden":
            return UnknownFieldError(_field_name(error["loc"]) or "")

    for error in errors:
        if error["type"] == "json_invalid":
            return MalformedSyntaxError()

    first = errors[0]
    return TypeMismatchError(_field_name(first["loc"]), missing=first["type"] == "missing")


def _byte_offset(text: str, pos: int) -> int:
    return len(text[:pos].encode("utf-8"))


def _ends_mid_token(text: str, e: json.JSONDecodeError) -> bool:
    """Whether the body stops partway through a literal or number."""
    rest = text[e.pos:]
    if e.msg == "Expecting value" and (rest == "-" or any(lit.startswith(rest) for lit in _LITERALS)):
        return True
    return e.pos > 0 and text[e.pos - 1].isdigit() and _NUMBER_TAIL.fullmatch(rest) is not None


def _constant_position(text: str, start: int) -> int:
    # everything before the constant already scanned as valid JSON
    for match in _STRING_OR_CONSTANT.finditer(text, start):
        if match.group(1):
            return match.start(1)
    return start


def read_json(body: bytes, shape: type[ModelT], *, max_bytes: int = MAX_BODY_BYTES) -> ModelT:
    """
    Decode a request body into shape.

    Exactly one JSON value is accepted. Raises a DecodeError subclass for
    anything the client got wrong and InvalidDestinationError when shape
    itself is unusable.
    """
    _check_destination(shape)

    if len(body) > max_bytes:
        raise BodyTooLargeError(max_bytes)

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedSyntaxError(e.start) from e

    start = _WHITESPACE.match(text).end()
    if start == len(text):
        raise EmptyBodyError()

    try:
        _, end = _decoder.raw_decode(text, start)
    except json.JSONDecodeError as e:
        if e.pos >= len(text) or e.msg.startswith("Unterminated string") or _ends_mid_token(text, e):
            raise UnexpectedTerminationError() from e
        raise MalformedSyntaxError(_byte_offset(text, e.pos)) from e
    except _NonStandardConstant as e:
        # NaN and Infinity are Python extensions, not JSON
        raise MalformedSyntaxError(_byte_offset(text, _constant_position(text, start))) from e

    try:
        value = shape.model_validate_json(text[start:end], strict=True)
    except ValidationError as e:
        raise _classify_validation_error(e) from e

    if _WHITESPACE.match(text, end).end() != len(text):
        raise TrailingContentError()

    return value


async def read_request_json(
    request: Request, shape: type[ModelT], *, max_bytes: int = MAX_BODY_BYTES
) -> ModelT:
    """Stream the request body, stopping as soon as it exceeds max_bytes."""
    _check_destination(shape)

    received = bytearray()
    async for chunk in request.stream():
        received.extend(chunk)
        if len(received) > max_bytes:
            raise BodyTooLargeError(max_bytes)

    return read_json(bytes(received), shape, max_bytes=max_bytes)
