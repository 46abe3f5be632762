"""Group command line interface definition."""

import logging
from typing import List, Optional

import typer
from rich.console import Console

from .. import views
from ..exceptions import NotFoundError, TooManyError
from ..model.auth import Group, Role, UserID
from ..model.outcomes import Outcome
from . import exit_with
from .dependencies import get_actor, get_service, get_store

log = logging.getLogger(__name__)

app = typer.Typer()


def find_group(ctx: typer.Context, identifier: str) -> Group:
    """Return the group that matches the identifier or exit with 404."""
    try:
        return get_store(ctx).find_group(identifier)
    except (NotFoundError, TooManyError) as error:
        Console(stderr=True).print(str(error))
        raise typer.Exit(code=404) from error


def find_user_ids(ctx: typer.Context, identifiers: List[str]) -> List[UserID]:
    """Return the ids of the users that match the identifiers or exit with 404."""
    store = get_store(ctx)
    try:
        return [store.find_user(identifier).id for identifier in identifiers]
    except (NotFoundError, TooManyError) as error:
        Console(stderr=True).print(str(error))
        raise typer.Exit(code=404) from error


@app.command()
def add(
    ctx: typer.Context,
    name: str = typer.Argument(
        ...,
        help="name of the group",
    ),
    user_ids: Optional[List[str]] = typer.Argument(
        None,
        help="Identifiers of the users to add to the group. It can be id or name.",
    ),
    description: str = typer.Option("", help="Description of the group"),
) -> None:
    """Add a new group owned by the user that runs the command."""
    actor = get_actor(ctx)
    service = get_service(ctx)
    members = find_user_ids(ctx, user_ids or [])
    try:
        group = service.create_group(actor, name=name, description=description)
    except ValueError as error:
        Console(stderr=True).print(str(error))
        raise typer.Exit(code=2) from error
    if members:
        service.add_members(actor, group.id, members)


@app.command()
def add_users(
    ctx: typer.Context,
    identifiers: List[str] = typer.Argument(
        ...,
        help="Unique identifiers of users to add. It can be user ids or names.",
    ),
    group_name: str = typer.Argument(...),
    role: Role = typer.Option(Role.MEMBER, help="Role of the new members"),
) -> None:
    """Add a list of users to an existent group."""
    group = find_group(ctx, group_name)
    result = get_service(ctx).add_members(
        get_actor(ctx), group.id, find_user_ids(ctx, identifiers), role=role
    )
    if isinstance(result, Outcome):
        exit_with(result)


@app.command()
def remove_users(  # noqa: B008
    ctx: typer.Context,
    identifiers: List[str] = typer.Argument(
        ...,
        help="Unique identifiers of users to remove. It can be user ids or names.",
    ),
    group_name: str = typer.Argument(...),
) -> None:
    """Remove a list of users from an existent group."""
    group = find_group(ctx, group_name)
    result = get_service(ctx).remove_members(
        get_actor(ctx), group.id, find_user_ids(ctx, identifiers)
    )
    if isinstance(result, Outcome):
        exit_with(result)


@app.command()
def set_role(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Id or name of the member"),
    group_name: str = typer.Argument(...),
    role: Role = typer.Argument(..., help="New role of the member"),
) -> None:
    """Change the role of a member of a group."""
    group = find_group(ctx, group_name)
    (user_id,) = find_user_ids(ctx, [identifier])
    try:
        result = get_service(ctx).set_member_role(
            get_actor(ctx), group.id, user_id, role
        )
    except ValueError as error:
        Console(stderr=True).print(str(error))
        raise typer.Exit(code=2) from error
    if isinstance(result, Outcome):
        exit_with(result)


@app.command()
def rename(
    ctx: typer.Context,
    group_name: str,
    new_name: str,
    description: Optional[str] = typer.Option(None, help="New description"),
) -> None:
    """Change the name and description of a group."""
    group = find_group(ctx, group_name)
    result = get_service(ctx).rename_group(
        get_actor(ctx), group.id, new_name, description=description
    )
    if isinstance(result, Outcome):
        exit_with(result)


@app.command()
def delete(ctx: typer.Context, group_name: str) -> None:
    """Delete a group, its records are kept."""
    group = find_group(ctx, group_name)
    result = get_service(ctx).delete_group(get_actor(ctx), group.id)
    if isinstance(result, Outcome):
        exit_with(result)


@app.command(name="list")
def list_(ctx: typer.Context) -> None:
    """List the groups the user belongs to."""
    groups = get_service(ctx).visible_groups(get_actor(ctx))
    print("\n".join(group.name for group in groups))


@app.command()
def show(ctx: typer.Context, name: str) -> None:
    """Print the information of a group."""
    actor = get_actor(ctx)
    group = find_group(ctx, name)
    if not actor.is_admin and group.role_of(actor.id) == Role.NONE:
        Console(stderr=True).print("Access denied")
        raise typer.Exit(code=403)

    store = get_store(ctx)
    users = []
    for user_id in [group.owner, *group.member_ids]:
        try:
            users.append(store.load_user(user_id))
        except NotFoundError:
            log.warning(f"The member {user_id} of group {group.name} doesn't exist")
    views.print_group(group, users)


if __name__ == "__main__":
    app()
