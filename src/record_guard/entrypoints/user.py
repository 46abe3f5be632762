"""User command line interface definition."""

import typer
from rich.console import Console

from .. import views
from ..exceptions import NotFoundError, TooManyError
from ..model.auth import User
from ..model.outcomes import Outcome
from . import exit_with
from .dependencies import get_actor, get_service, get_store

app = typer.Typer()


def find_user(ctx: typer.Context, identifier: str) -> User:
    """Return the user that matches the identifier or exit with code 404."""
    try:
        return get_store(ctx).find_user(identifier)
    except (NotFoundError, TooManyError) as error:
        Console(stderr=True).print(str(error))
        raise typer.Exit(code=404) from error


@app.command()
def add(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="Unique identifier of the user"),
    name: str = typer.Argument(..., help="Name of the user"),
    admin: bool = typer.Option(False, help="Make the user a system admin"),
) -> None:
    """Add a new user.

    The first user of the store is created as system admin, the rest can only be
    added by system admins.
    """
    err_console = Console(stderr=True)
    store = get_store(ctx)
    if store.users:
        actor = get_actor(ctx)
        if not actor.is_admin:
            err_console.print("Access denied")
            raise typer.Exit(code=403)
    else:
        admin = True

    try:
        store.add_user(name=name, user_id=user_id, is_admin=admin)
    except ValueError as error:
        err_console.print(str(error))
        raise typer.Exit(code=2) from error


@app.command(name="list")
def list_(ctx: typer.Context) -> None:
    """List existing users."""
    print("\n".join(user.name for user in get_store(ctx).users))


@app.command()
def show(ctx: typer.Context, identifier: str) -> None:
    """Print the information of a user."""
    views.print_model(find_user(ctx, identifier))


@app.command()
def set_admin(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Id or name of the user"),
    admin: bool = typer.Option(
        True, "--on/--off", help="Grant or revoke the system admin role"
    ),
) -> None:
    """Grant or revoke the system admin role of a user."""
    actor = get_actor(ctx)
    target = find_user(ctx, identifier)
    try:
        result = get_service(ctx).set_admin(actor, target.id, admin)
    except ValueError as error:
        Console(stderr=True).print(str(error))
        raise typer.Exit(code=2) from error
    if isinstance(result, Outcome):
        exit_with(result)


@app.command()
def delete(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Id or name of the user"),
) -> None:
    """Delete a user with its records and the groups it owns."""
    actor = get_actor(ctx)
    target = find_user(ctx, identifier)
    try:
        result = get_service(ctx).delete_user(actor, target.id)
    except ValueError as error:
        Console(stderr=True).print(str(error))
        raise typer.Exit(code=2) from error
    if isinstance(result, Outcome):
        exit_with(result)
