"""Record command line interface definition."""

import os
from typing import Dict, List, Optional, Union

import typer
from rich.console import Console

from .. import views
from ..exceptions import EncryptionError
from ..model.outcomes import Outcome
from ..model.record import Permission, Record, RecordKind
from . import exit_with
from .dependencies import get_actor, get_service
from .group import find_group, find_user_ids

app = typer.Typer()


def _fields(
    content: Optional[str], username: Optional[str], password: Optional[str]
) -> Dict[str, str]:
    """Return the sensitive fields given in the command line."""
    fields = {"content": content, "username": username, "password": password}
    return {field: value for field, value in fields.items() if value is not None}


def _finish(result: Union[Record, Outcome]) -> Record:
    """Exit if the operation was denied, otherwise return the record."""
    if isinstance(result, Outcome):
        exit_with(result)
    return result


# R0913: Too many arguments for the function, but we need them to define the command
#   line interface
@app.command()
def add(  # noqa: R0913
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Title of the record"),
    kind: RecordKind = typer.Option(RecordKind.NOTE, help="Kind of record"),
    content: Optional[str] = typer.Option(None, help="Content of the note"),
    username: Optional[str] = typer.Option(None, help="Username of the entry"),
    password: Optional[str] = typer.Option(None, help="Password of the entry"),
    notes: Optional[str] = typer.Option(None, help="Notes of the entry"),
    group: Optional[str] = typer.Option(None, help="Group to share the record with"),
    encrypt: bool = typer.Option(False, help="Encrypt the sensitive fields"),
    passcode: Optional[str] = typer.Option(None, help="Lock the record"),
    tags: Optional[List[str]] = typer.Option(None, "--tag", help="Record label"),
) -> None:
    """Add a new record owned by the user that runs the command."""
    group_id = find_group(ctx, group).id if group else None
    try:
        result = get_service(ctx).create_record(
            get_actor(ctx),
            title=title,
            kind=kind,
            fields=_fields(content, username, password),
            group=group_id,
            encrypt=encrypt,
            passcode=passcode,
            tags=tags,
            notes=notes,
        )
    except (ValueError, EncryptionError) as error:
        Console(stderr=True).print(str(error))
        raise typer.Exit(code=2) from error
    print(_finish(result).id)


@app.command(name="list")
def list_(ctx: typer.Context) -> None:
    """List the records the user can read."""
    views.print_records(get_service(ctx).accessible_records(get_actor(ctx)))


@app.command()
def show(
    ctx: typer.Context,
    record_id: str,
    ask_passcode: bool = typer.Option(
        False,
        "--passcode",
        "-p",
        help=(
            "Ask for the passcode of a locked record, it can also be set with the "
            "RECORD_GUARD_PASSCODE environment variable"
        ),
    ),
) -> None:
    """Print the content of a record."""
    passcode = os.environ.get("RECORD_GUARD_PASSCODE")
    if ask_passcode:
        passcode = typer.prompt("Passcode", hide_input=True)
    result = get_service(ctx).reveal(get_actor(ctx), record_id, candidate=passcode)
    views.print_record(_finish(result))


# R0913: Too many arguments for the function, but we need them to define the command
#   line interface
@app.command()
def edit(  # noqa: R0913
    ctx: typer.Context,
    record_id: str,
    title: Optional[str] = typer.Option(None, help="New title"),
    content: Optional[str] = typer.Option(None, help="New content of the note"),
    username: Optional[str] = typer.Option(None, help="New username of the entry"),
    password: Optional[str] = typer.Option(None, help="New password of the entry"),
    notes: Optional[str] = typer.Option(None, help="New notes of the entry"),
    tags: Optional[List[str]] = typer.Option(None, "--tag", help="Record label"),
) -> None:
    """Change the content of a record."""
    try:
        result = get_service(ctx).update_record(
            get_actor(ctx),
            record_id,
            fields=_fields(content, username, password),
            title=title,
            tags=tags or None,
            notes=notes,
        )
    except (ValueError, EncryptionError) as error:
        Console(stderr=True).print(str(error))
        raise typer.Exit(code=2) from error
    _finish(result)


@app.command()
def share(
    ctx: typer.Context,
    record_id: str,
    identifier: str = typer.Argument(..., help="Id or name of the user"),
    permission: Permission = typer.Option(Permission.VIEW, help="Granted access"),
) -> None:
    """Share a record with a user."""
    (user_id,) = find_user_ids(ctx, [identifier])
    try:
        result = get_service(ctx).share(
            get_actor(ctx), record_id, user_id, permission=permission
        )
    except ValueError as error:
        Console(stderr=True).print(str(error))
        raise typer.Exit(code=2) from error
    _finish(result)


@app.command()
def unshare(
    ctx: typer.Context,
    record_id: str,
    identifier: str = typer.Argument(..., help="Id or name of the user"),
) -> None:
    """Revoke the share of a record with a user."""
    (user_id,) = find_user_ids(ctx, [identifier])
    _finish(get_service(ctx).unshare(get_actor(ctx), record_id, user_id))


@app.command()
def lock(
    ctx: typer.Context,
    record_id: str,
    passcode: str = typer.Option(
        ..., prompt=True, hide_input=True, help="Passcode that will unlock the record"
    ),
) -> None:
    """Lock a record with a passcode."""
    try:
        result = get_service(ctx).lock(get_actor(ctx), record_id, passcode)
    except ValueError as error:
        Console(stderr=True).print(str(error))
        raise typer.Exit(code=2) from error
    _finish(result)


@app.command()
def unlock(ctx: typer.Context, record_id: str) -> None:
    """Remove the passcode lock of a record."""
    _finish(get_service(ctx).unlock(get_actor(ctx), record_id))


@app.command()
def encryption(
    ctx: typer.Context,
    record_id: str,
    enable: bool = typer.Option(
        True, "--on/--off", help="Encrypt or decrypt the sensitive fields"
    ),
) -> None:
    """Encrypt or decrypt the sensitive fields of a record."""
    try:
        result = get_service(ctx).set_encryption(get_actor(ctx), record_id, enable)
    except EncryptionError as error:
        Console(stderr=True).print(str(error))
        raise typer.Exit(code=2) from error
    _finish(result)


@app.command()
def move(
    ctx: typer.Context,
    record_id: str,
    group_name: Optional[str] = typer.Argument(
        None, help="Group to move the record to, empty to remove it from its group"
    ),
) -> None:
    """Change the group of a record."""
    group_id = find_group(ctx, group_name).id if group_name else None
    _finish(get_service(ctx).move_to_group(get_actor(ctx), record_id, group_id))


@app.command()
def delete(ctx: typer.Context, record_id: str) -> None:
    """Delete a record."""
    _finish(get_service(ctx).delete_record(get_actor(ctx), record_id))


if __name__ == "__main__":
    app()
