#!/usr/bin/env python
# backend/coworking/commands/manage.py
"""
Management commands for the coworking backend.

Usage:
    python -m coworking.commands.manage init-db
    python -m coworking.commands.manage create-admin --email admin@coworking.com
    python -m coworking.commands.manage seed-spaces
    python -m coworking.commands.manage run-jobs --limit 50
"""

from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional

import click

from ..auth import get_password_hash
from ..core.config import settings
from ..core.enums import MembershipType, SpaceType, UserRole, UserStatus
from ..database import Base, SessionLocal, engine
from ..models.space import Space
from ..repositories.factory import RepositoryFactory
from ..tasks.background_jobs import run_once

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

SAMPLE_SPACES: List[Dict[str, Any]] = [
    {
        "name": "Hot Desk A1",
        "type": SpaceType.DESK.value,
        "capacity": 1,
        "hourly_rate": Decimal("8.00"),
        "description": "Open-plan desk by the window",
        "amenities": ["wifi", "power", "coffee"],
        "location": "Floor 1",
    },
    {
        "name": "Private Office 2B",
        "type": SpaceType.OFFICE.value,
        "capacity": 4,
        "hourly_rate": Decimal("35.00"),
        "description": "Lockable office for small teams",
        "amenities": ["wifi", "whiteboard", "monitor"],
        "location": "Floor 2",
    },
    {
        "name": "Meeting Room Harbor",
        "type": SpaceType.MEETING_ROOM.value,
        "capacity": 8,
        "hourly_rate": Decimal("50.00"),
        "description": "Meeting room with video conferencing",
        "amenities": ["wifi", "tv", "video_conferencing"],
        "location": "Floor 2",
    },
    {
        "name": "Conference Hall",
        "type": SpaceType.CONFERENCE_ROOM.value,
        "capacity": 30,
        "hourly_rate": Decimal("120.00"),
        "description": "Large room for workshops and events",
        "amenities": ["wifi", "projector", "sound_system"],
        "location": "Floor 3",
    },
]


def _ok(message: str) -> None:
    click.echo(f"{click.style('[OK]', fg='green')} {message}")


def _warn(message: str) -> None:
    click.echo(f"{click.style('[WARN]', fg='yellow')} {message}", err=True)


@click.group()
def cli() -> None:
    """Coworking backend management commands."""


@cli.command("init-db")
def init_db() -> None:
    """Create all tables (use Alembic for production databases)."""
    from .. import models  # noqa: F401  registers tables

    Base.metadata.create_all(bind=engine)
    _ok(f"Tables created on {settings.database_url.split('@')[-1]}")


@cli.command("create-admin")
@click.option("--email", default="admin@coworking.com", show_default=True)
@click.option("--username", default="admin", show_default=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
def create_admin(email: str, username: str, password: str) -> None:
    """Create an administrator account if the email is not taken."""
    db = SessionLocal()
    try:
        users = RepositoryFactory.create_user_repository(db)
        if users.get_by_email(email.lower()) is not None:
            _warn(f"A user with email {email} already exists")
            return
        users.create(
            username=username,
            email=email.lower(),
            hashed_password=get_password_hash(password),
            role=UserRole.ADMIN.value,
            membership_type=MembershipType.BASIC.value,
            status=UserStatus.ACTIVE.value,
        )
        db.commit()
        _ok(f"Admin {email} created")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@cli.command("seed-spaces")
def seed_spaces() -> None:
    """Insert the sample workspace catalogue, skipping names that already exist."""
    db = SessionLocal()
    try:
        existing = {name for (name,) in db.query(Space.name).all()}
        spaces = RepositoryFactory.create_space_repository(db)
        created = 0
        for data in SAMPLE_SPACES:
            if data["name"] in existing:
                continue
            spaces.create(**data)
            created += 1
        db.commit()
        _ok(f"Seeded {created} workspaces ({len(SAMPLE_SPACES) - created} already present)")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@cli.command("run-jobs")
@click.option("--limit", type=int, default=None, help="Maximum jobs to process")
def run_jobs(limit: Optional[int]) -> None:
    """Process due background jobs once and report the outcome."""
    counts = run_once(limit=limit)
    _ok(
        f"succeeded={counts['succeeded']} retried={counts['retried']} "
        f"dead_letter={counts['dead_letter']}"
    )


if __name__ == "__main__":
    cli()
