"""Test the implementation of the user command line command."""

from pathlib import Path

from typer.testing import CliRunner

from record_guard.adapters import YamlStore
from record_guard.entrypoints.cli import app
from record_guard.model.auth import User


def test_first_user_is_admin(cli_runner: CliRunner, tmp_path: Path) -> None:
    """
    Given: an empty store
    When: calling user add command
    Then: the user is created as system admin
    """
    store_file = tmp_path / "empty.yaml"

    result = cli_runner.invoke(
        app,
        ["user", "add", "root", "Root"],
        env={"RECORD_GUARD_STORE_PATH": str(store_file), "RECORD_GUARD_USER": None},
    )

    assert result.exit_code == 0
    store = YamlStore()
    store.load(str(store_file))
    assert store.users == [User(id="root", name="Root", is_admin=True)]


def test_admin_adds_users(cli_runner: CliRunner, store: YamlStore) -> None:
    """
    Given: a store with an admin
    When: the admin calls the user add command
    Then: a plain user is added
    """
    result = cli_runner.invoke(app, ["user", "add", "dave", "Dave"])

    assert result.exit_code == 0
    store.reload()
    assert store.load_user("dave") == User(id="dave", name="Dave")


def test_plain_users_cant_add_users(
    cli_runner: CliRunner, store: YamlStore, alice: User
) -> None:
    """
    Given: a store with an admin and a plain user
    When: the plain user calls the user add command
    Then: it's denied
    """
    result = cli_runner.invoke(app, ["--user", "alice", "user", "add", "eve", "Eve"])

    assert result.exit_code == 403
    store.reload()
    assert [user.id for user in store.users] == ["admin", "alice"]


def test_user_add_rejects_duplicates(cli_runner: CliRunner) -> None:
    """
    Given: a store with an admin
    When: adding a user with the same id
    Then: an error is returned
    """
    result = cli_runner.invoke(app, ["user", "add", "admin", "Other"])

    assert result.exit_code == 2
    assert "is using the id admin" in result.output


def test_user_list(cli_runner: CliRunner, alice: User) -> None:
    """
    Given: a store with two users
    When: calling the user list command
    Then: their names are printed
    """
    result = cli_runner.invoke(app, ["user", "list"])

    assert result.exit_code == 0
    assert result.stdout == "Admin\nAlice\n"


def test_user_show(cli_runner: CliRunner, alice: User) -> None:
    """
    Given: a store with a user
    When: calling the user show command
    Then: its information is printed
    """
    result = cli_runner.invoke(app, ["user", "show", "Alice"])

    assert result.exit_code == 0
    assert "alice" in result.stdout
    assert "Alice" in result.stdout


def test_user_show_unknown_user(cli_runner: CliRunner) -> None:
    """
    Given: a configured environment
    When: calling the user show command with an unknown user
    Then: an error is returned
    """
    result = cli_runner.invoke(app, ["user", "show", "mallory"])

    assert result.exit_code == 404


def test_user_set_admin(cli_runner: CliRunner, store: YamlStore, alice: User) -> None:
    """
    Given: a store with an admin and a plain user
    When: the admin grants the admin role to alice, and alice revokes the role of
        the first admin
    Then: alice ends up as the only system admin
    """
    granted = cli_runner.invoke(app, ["user", "set-admin", "Alice", "--on"])
    revoked = cli_runner.invoke(
        app, ["--user", "alice", "user", "set-admin", "admin", "--off"]
    )

    assert granted.exit_code == 0
    assert revoked.exit_code == 0
    store.reload()
    assert store.load_user("alice").is_admin
    assert not store.load_user("admin").is_admin


def test_user_set_admin_denied_to_plain_users(
    cli_runner: CliRunner, store: YamlStore, alice: User
) -> None:
    """
    Given: a store with an admin and a plain user
    When: alice tries to make herself admin
    Then: it's denied
    """
    result = cli_runner.invoke(app, ["--user", "alice", "user", "set-admin", "alice"])

    assert result.exit_code == 403
    assert "Access denied" in result.output
    store.reload()
    assert not store.load_user("alice").is_admin


def test_user_set_admin_keeps_the_last_admin(cli_runner: CliRunner) -> None:
    """
    Given: a store with only one admin
    When: the admin revokes its own role
    Then: an error is returned
    """
    result = cli_runner.invoke(app, ["user", "set-admin", "admin", "--off"])

    assert result.exit_code == 2
    assert "Admin is the last system admin." in result.output


def test_user_set_admin_unknown_user(cli_runner: CliRunner) -> None:
    """
    Given: a configured environment
    When: granting the admin role to an unknown user
    Then: an error is returned
    """
    result = cli_runner.invoke(app, ["user", "set-admin", "mallory"])

    assert result.exit_code == 404
    assert "There is no user that matches mallory." in result.output


def test_user_delete(
    cli_runner: CliRunner, store: YamlStore, alice: User, bob: User
) -> None:
    """
    Given: a record of alice
    When: the admin deletes alice
    Then: alice and her record are gone
    """
    cli_runner.invoke(app, ["--user", "alice", "record", "add", "Plan"])

    result = cli_runner.invoke(app, ["user", "delete", "alice"])

    assert result.exit_code == 0
    store.reload()
    assert [user.id for user in store.users] == ["admin", "bob"]
    assert store.records == []


def test_user_delete_denied_to_plain_users(
    cli_runner: CliRunner, store: YamlStore, alice: User, bob: User
) -> None:
    """
    Given: two plain users
    When: alice deletes bob
    Then: it's denied
    """
    result = cli_runner.invoke(app, ["--user", "alice", "user", "delete", "bob"])

    assert result.exit_code == 403
    store.reload()
    assert store.load_user("bob") == bob
