"""Command line interface definition."""

import logging
from pathlib import Path
from typing import Any, Optional

import click
import typer
from rich.console import Console
from typer.core import TyperGroup

from .. import views
from ..exceptions import NotFoundError, StoreError, TooManyError
from ..version import version_info
from . import group, load_logger, record, user
from .dependencies import get_actor, get_service, get_store

log = logging.getLogger(__name__)


class StoreErrorGroup(TyperGroup):
    """Finish the commands that fail to save the store with a generic message."""

    def invoke(self, ctx: click.Context) -> Any:
        """Run the selected command."""
        try:
            return super().invoke(ctx)
        except StoreError as error:
            log.error(f"{error}: {type(error.__cause__).__name__}")
            Console(stderr=True).print("The store could not be saved")
            raise typer.Exit(code=1) from error


app = typer.Typer(cls=StoreErrorGroup)
app.add_typer(group.app, name="group")
app.add_typer(record.app, name="record")
app.add_typer(user.app, name="user")


def version_callback(value: bool) -> None:
    """Print the version of the program."""
    if value:
        print(version_info())
        raise typer.Exit()


# W0613: version is not used, but it is
# M511: - mutable default arg of type Call, it's how it's defined
# B008: Do not perform function calls in argument defaults. It's how it's defined
# R0913: Too many arguments for the function, but we need them to define the command
#   line interface
@app.callback()
def main(  # noqa: R0913
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(  # noqa: W0613, M511, B008
        None, "--version", callback=version_callback, is_eager=True
    ),
    config: Optional[Path] = typer.Option(  # noqa: M511, B008
        None, envvar="RECORD_GUARD_CONFIG", help="Path to the configuration file."
    ),
    store: Optional[Path] = typer.Option(  # noqa: M511, B008
        None,
        help="Path to the store file, it overrides the one of the configuration.",
    ),
    user_id: Optional[str] = typer.Option(  # noqa: M511, B008
        None,
        "--user",
        envvar="RECORD_GUARD_USER",
        help="Id or name of the user that runs the command.",
    ),
    verbose: bool = False,
) -> None:
    """Share notes and passwords with users and groups, locked and encrypted."""
    ctx.ensure_object(dict)
    load_logger(verbose)
    ctx.obj["config"] = config
    ctx.obj["store"] = store.expanduser() if store else None
    ctx.obj["user"] = user_id


@app.command()
def access(
    ctx: typer.Context,
    identifier: Optional[str] = typer.Argument(
        None,
        help=(
            "Id or name of the user who's access to check, by default the user "
            "that runs the command. Only system admins can check other users."
        ),
    ),
) -> None:
    """Check what records does the user have access to."""
    err_console = Console(stderr=True)
    actor = get_actor(ctx)
    target = actor
    if identifier is not None and not actor.match(identifier):
        if not actor.is_admin:
            err_console.print("Access denied")
            raise typer.Exit(code=403)
        try:
            target = get_store(ctx).find_user(identifier)
        except (NotFoundError, TooManyError) as error:
            err_console.print(str(error))
            raise typer.Exit(code=404) from error

    records = get_service(ctx).accessible_records(target)
    views.print_access(label=target.name, records=records)


if __name__ == "__main__":
    app()
