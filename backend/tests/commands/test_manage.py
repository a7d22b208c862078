from click.testing import CliRunner
import pytest

from coworking.auth import verify_password
from coworking.commands.manage import SAMPLE_SPACES, cli
from coworking.core.enums import UserRole
from coworking.models.space import Space
from coworking.repositories.user_repository import UserRepository


@pytest.fixture
def runner():
    return CliRunner()


def test_init_db_is_idempotent(runner):
    result = runner.invoke(cli, ["init-db"])
    assert result.exit_code == 0, result.output
    assert "Tables created" in result.output


def test_create_admin(runner, db):
    result = runner.invoke(
        cli, ["create-admin", "--email", "Boss@Example.com", "--password", "s3cret-pass"]
    )

    assert result.exit_code == 0, result.output
    admin = UserRepository(db).get_by_email("boss@example.com")
    assert admin.role == UserRole.ADMIN.value
    assert verify_password("s3cret-pass", admin.hashed_password)


def test_create_admin_skips_existing_email(runner, admin):
    result = runner.invoke(
        cli, ["create-admin", "--email", admin.email, "--username", "boss", "--password", "x"]
    )

    assert result.exit_code == 0
    assert "already exists" in result.output


def test_seed_spaces_twice_adds_nothing_new(runner, db):
    first = runner.invoke(cli, ["seed-spaces"])
    second = runner.invoke(cli, ["seed-spaces"])

    assert first.exit_code == 0 and second.exit_code == 0
    assert f"Seeded {len(SAMPLE_SPACES)} workspaces" in first.output
    assert "Seeded 0 workspaces" in second.output
    assert db.query(Space).count() == len(SAMPLE_SPACES)


def test_run_jobs_with_empty_queue(runner):
    result = runner.invoke(cli, ["run-jobs", "--limit", "5"])

    assert result.exit_code == 0, result.output
    assert "succeeded=0 retried=0 dead_letter=0" in result.output
