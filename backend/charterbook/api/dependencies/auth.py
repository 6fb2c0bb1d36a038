# backend/charterbook/api/dependencies/auth.py
"""
Actor resolution for API requests.

Full authentication is outside this service; an upstream gateway asserts
the captain's identity in the ``X-Captain-Id`` header. Guests act through
their booking's management token. Scheduled-job endpoints require the
shared cron secret as a bearer token.
"""

import logging
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ...core.actor import Actor
from ...core.config import settings
from ...core.exceptions import UnauthorizedException
from ...core.tokens import secrets_match
from ...repositories import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)


def get_current_captain(
    x_captain_id: Optional[str] = Header(None, alias="X-Captain-Id"),
    db: Session = Depends(get_db),
) -> Actor:
    if not x_captain_id:
        raise UnauthorizedException("Captain identity is required").to_http_exception()
    captain = RepositoryFactory.create_captain_repository(db).get_by_id(x_captain_id)
    if captain is None:
        raise UnauthorizedException("Unknown captain").to_http_exception()
    return Actor.captain(captain.id)


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>``."""
    expected = settings.cron_secret.get_secret_value()
    if not expected:
        logger.error("CRON_SECRET is not configured; refusing cron request")
        raise UnauthorizedException("Cron endpoint is not configured").to_http_exception()

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token or not secrets_match(token.strip(), expected):
        logger.warning("cron_auth_failed")
        raise UnauthorizedException("Invalid cron credentials").to_http_exception()
