"""Guest-facing credentials issued at booking admission."""

from datetime import datetime, timedelta
import secrets
import string

from .constants import (
    CONFIRMATION_CODE_ALPHABET,
    CONFIRMATION_CODE_LENGTH,
    MANAGEMENT_TOKEN_LENGTH,
    MANAGEMENT_TOKEN_TTL_DAYS,
)

_TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_management_token() -> str:
    """Return an unguessable alphanumeric token for the guest management link."""
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(MANAGEMENT_TOKEN_LENGTH))


def management_token_expiry(scheduled_start: datetime) -> datetime:
    return scheduled_start + timedelta(days=MANAGEMENT_TOKEN_TTL_DAYS)


def generate_confirmation_code() -> str:
    """Short human-readable code; ambiguous characters (0/O, 1/I) are excluded."""
    return "".join(
        secrets.choice(CONFIRMATION_CODE_ALPHABET) for _ in range(CONFIRMATION_CODE_LENGTH)
    )


def secrets_match(provided: str, expected: str) -> bool:
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
