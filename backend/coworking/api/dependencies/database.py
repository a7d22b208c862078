# backend/coworking/api/dependencies/database.py
"""Request-scoped session: one unit of work per HTTP request."""

from typing import Iterator

from sqlalchemy.orm import Session

from ...database import SessionLocal


def get_db() -> Iterator[Session]:
    """
    Open a session for the request and close it afterwards.

    Services commit their own transactions; anything left pending when the
    handler returns is committed here, and an escaping error discards it.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
