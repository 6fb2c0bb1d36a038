# backend/charterbook/api/dependencies/database.py
"""
Request-scoped database session.

Routes depend on this name rather than ``charterbook.database.get_db`` so
tests can swap the session in one place through ``dependency_overrides``.
"""

from typing import Iterator

from sqlalchemy.orm import Session

from ...database import get_db as _session_scope


def get_db() -> Iterator[Session]:
    yield from _session_scope()
