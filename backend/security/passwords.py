"""
Password credential value object and credential validation.

Hashes are bcrypt at cost 12. bcrypt only looks at the first 72 bytes of
a password, which is why longer passwords are rejected rather than
silently truncated.
"""

from __future__ import annotations

from dataclasses import dataclass

import bcrypt

from backend.validation.validator import EMAIL_RX, Validator, matches

BCRYPT_COST = 12

PASSWORD_MIN_BYTES = 8
PASSWORD_MAX_BYTES = 72

__all__ = [
    "MissingHashError",
    "Password",
    "PasswordHashError",
    "PasswordTooLongError",
    "validate_credentials",
    "validate_email",
    "validate_password",
]


class PasswordHashError(ValueError):
    """Raised when a stored hash cannot be parsed."""


class PasswordTooLongError(ValueError):
    """Raised when a plaintext exceeds what bcrypt can hash."""


class MissingHashError(RuntimeError):
    """A credential reached persistence without a hash. Programming error."""


@dataclass
class Password:
    """
    Plaintext (only while it is known) plus its hash.

    plaintext is None when the value was rebuilt from a stored hash, which
    is different from an empty plaintext that still needs validating.
    """

    hash: bytes = b""
    plaintext: str | None = None

    @classmethod
    def from_plaintext(cls, plaintext: str) -> Password:
        password = cls()
        password.set(plaintext)
        return password

    @classmethod
    def from_hash(cls, hashed: bytes) -> Password:
        return cls(hash=hashed)

    def set(self, plaintext: str) -> None:
        """Hash plaintext and keep both versions."""
        secret = plaintext.encode("utf-8")
        if len(secret) > PASSWORD_MAX_BYTES:
            raise PasswordTooLongError(f"password must not be more than {PASSWORD_MAX_BYTES} bytes")

        self.hash = bcrypt.hashpw(secret, bcrypt.gensalt(rounds=BCRYPT_COST))
        self.plaintext = plaintext

    def matches(self, plaintext: str) -> bool:
        """
        Check plaintext against the stored hash.

        Returns False on a mismatch; raises PasswordHashError when the stored
        hash is malformed.
        """
        secret = plaintext.encode("utf-8")
        if len(secret) > PASSWORD_MAX_BYTES:
            # never accepted by set(), so it cannot match
            return False

        try:
            return bcrypt.checkpw(secret, self.hash)
        except ValueError as e:
            raise PasswordHashError(f"malformed password hash: {e}") from e

    def require_hash(self) -> bytes:
        if not self.hash:
            raise MissingHashError("missing password hash")
        return self.hash


def validate_email(v: Validator, email: str) -> None:
    v.check(email != "", "email", "must be provided")
    v.check(matches(email, EMAIL_RX), "email", "must be a valid email address")


def validate_password(v: Validator, plaintext: str) -> None:
    size = len(plaintext.encode("utf-8"))
    v.check(plaintext != "", "password", "must be provided")
    v.check(size >= PASSWORD_MIN_BYTES, "password", "must be at least 8 bytes long")
    v.check(size <= PASSWORD_MAX_BYTES, "password", "must not be more than 72 bytes long")


def validate_credentials(v: Validator, email: str, password: Password) -> None:
    """
    Validate an email/password pair before it is stored.

    Field problems accumulate in v. A missing hash is not a field problem:
    it raises MissingHashError.
    """
    validate_email(v, email)
    if password.plaintext is not None:
        validate_password(v, password.plaintext)

    password.require_hash()
