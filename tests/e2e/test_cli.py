"""Test the command line interface."""

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from _pytest.logging import LogCaptureFixture
from typer.testing import CliRunner

from record_guard.adapters import YamlStore
from record_guard.entrypoints.cli import app
from record_guard.exceptions import StoreError
from record_guard.version import __version__

if TYPE_CHECKING:
    from record_guard.model.auth import Group, User
    from record_guard.services import RecordService


def test_version(cli_runner: CliRunner) -> None:
    """Prints program version when called with --version."""
    result = cli_runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert re.search(
        rf" *record_guard: {__version__}\n *cryptography: .*\n *pydantic: .*\n"
        r" *Python: .*\n *Platform: .*",
        result.stdout,
    )


def test_missing_encryption_key_exits_with_error(cli_runner: CliRunner) -> None:
    """
    Given: an environment without encryption key
    When: calling any command
    Then: the program refuses to start
    """
    result = cli_runner.invoke(
        app, ["record", "list"], env={"RECORD_GUARD_ENCRYPTION_KEY": None}
    )

    assert result.exit_code == 2
    assert "Invalid configuration for: encryption_key" in result.output


def test_corrupt_store_exits_with_error(
    cli_runner: CliRunner, store_file: Path, caplog: LogCaptureFixture
) -> None:
    """
    Given: a store file that is not valid YAML
    When: calling any command
    Then: the error is logged with the path of the store and a generic message is
        shown instead of a traceback
    """
    store_file.write_text("users: [ {id: 'bad id!', name: x}", encoding="utf-8")

    result = cli_runner.invoke(app, ["record", "list"])

    assert result.exit_code == 2
    assert "The store could not be read" in result.output
    assert "Traceback" not in result.output
    assert any(
        name == "record_guard.entrypoints.dependencies"
        and level == logging.ERROR
        and str(store_file) in message
        for name, level, message in caplog.record_tuples
    )


def test_store_write_failure_exits_with_error(
    cli_runner: CliRunner,
    store_file: Path,
    monkeypatch: pytest.MonkeyPatch,
    caplog: LogCaptureFixture,
) -> None:
    """
    Given: a store that can't be saved
    When: adding a record
    Then: the error is logged and a generic message is shown
    """

    def fail_to_save(store: YamlStore) -> None:
        raise StoreError(f"The store {store.path} could not be saved") from OSError(
            "No space left on device"
        )

    monkeypatch.setattr(YamlStore, "save", fail_to_save)

    result = cli_runner.invoke(app, ["record", "add", "Note", "--content", "Milk"])

    assert result.exit_code == 1
    assert "The store could not be saved" in result.output
    assert (
        "record_guard.entrypoints.cli",
        logging.ERROR,
        f"The store {store_file} could not be saved: OSError",
    ) in caplog.record_tuples


def test_unknown_user_is_rejected(cli_runner: CliRunner) -> None:
    """
    Given: a configured environment
    When: calling a command as a user that doesn't exist
    Then: the command is rejected
    """
    result = cli_runner.invoke(app, ["--user", "mallory", "record", "list"])

    assert result.exit_code == 401
    assert "There is no user that matches mallory." in result.output


def test_user_is_required(cli_runner: CliRunner) -> None:
    """
    Given: an environment without the user that runs the commands
    When: calling a command that needs it
    Then: the command is rejected
    """
    result = cli_runner.invoke(
        app, ["record", "list"], env={"RECORD_GUARD_USER": None}
    )

    assert result.exit_code == 401
    assert "Select the user with --user" in result.output


def test_store_option_overrides_the_configuration(
    cli_runner: CliRunner, tmp_path: Path
) -> None:
    """
    Given: a configured environment
    When: calling the user add command with another store
    Then: the user is created in that store as its first user
    """
    other_store = tmp_path / "other" / "store.yaml"

    result = cli_runner.invoke(
        app, ["--store", str(other_store), "user", "add", "root", "Root"]
    )

    assert result.exit_code == 0
    assert "id: root" in other_store.read_text()


def test_access_lists_the_records_of_the_user(
    cli_runner: CliRunner,
    service: "RecordService",
    alice: "User",
    bob: "User",
    team: "Group",
) -> None:
    """
    Given: a personal record of bob and a record of the team
    When: bob checks his access
    Then: both records are shown under their group
    """
    service.create_record(bob, "Bob notes")
    service.create_record(alice, "Team plan", group=team.id)

    result = cli_runner.invoke(app, ["--user", "bob", "access"])

    assert result.exit_code == 0
    assert "Record access for Bob" in result.stdout
    assert "Bob notes" in result.stdout
    assert "Team plan" in result.stdout
    assert team.id in result.stdout


def test_access_of_other_users_is_reserved_to_admins(
    cli_runner: CliRunner, alice: "User", bob: "User"
) -> None:
    """
    Given: two users
    When: bob checks the access of alice
    Then: it's denied
    """
    result = cli_runner.invoke(app, ["--user", "bob", "access", "alice"])

    assert result.exit_code == 403
    assert "Access denied" in result.output


def test_admin_can_check_the_access_of_other_users(
    cli_runner: CliRunner, service: "RecordService", alice: "User"
) -> None:
    """
    Given: a record of alice
    When: the admin checks the access of alice
    Then: the record is shown
    """
    service.create_record(alice, "Alice notes")

    result = cli_runner.invoke(app, ["access", "Alice"])

    assert result.exit_code == 0
    assert "Record access for Alice" in result.stdout
    assert "Alice notes" in result.stdout
