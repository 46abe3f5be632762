"""Configure the dependencies of the program."""

import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import BaseModel, ConfigDict
from rich.console import Console

from ..adapters import Cipher, YamlStore
from ..config import Settings, load_settings
from ..exceptions import ConfigurationError, NotFoundError, StoreError, TooManyError
from ..model.auth import User
from ..model.lock import PasscodeGate
from ..services import RecordService

log = logging.getLogger(__name__)


class Dependencies(BaseModel):
    """Configure the dependencies of the program."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    settings: Settings
    store: YamlStore
    service: RecordService


def configure_dependencies(
    config_file: Optional[Path] = None, store_path: Optional[Path] = None
) -> Dependencies:
    """Configure the program dependencies.

    Args:
        config_file: Path to the configuration file.
        store_path: Path to the store file, it overrides the configured one.

    Raises:
        ConfigurationError: if the configuration is missing or invalid.
    """
    settings = load_settings(config_file)
    store = YamlStore()
    store.load(str(store_path or settings.store_path))
    gate = PasscodeGate(
        store,
        max_attempts=settings.max_attempts,
        cooldown=settings.cooldown,
        unlock_ttl=settings.unlock_duration,
    )
    service = RecordService(
        store, Cipher(settings.encryption_key.get_secret_value()), gate
    )
    return Dependencies(settings=settings, store=store, service=service)


def get_dependencies(ctx: typer.Context) -> Dependencies:
    """Return the dependencies of the program, configuring them the first time.

    Raises:
        typer.Exit: with code 2 if the configuration or the store are invalid.
    """
    if "deps" not in ctx.obj:
        try:
            ctx.obj["deps"] = configure_dependencies(
                ctx.obj.get("config"), ctx.obj.get("store")
            )
        except ConfigurationError as error:
            Console(stderr=True).print(str(error))
            raise typer.Exit(code=2) from error
        except StoreError as error:
            log.error(f"{error}: {type(error.__cause__).__name__}")
            Console(stderr=True).print("The store could not be read")
            raise typer.Exit(code=2) from error
    return ctx.obj["deps"]


def get_service(ctx: typer.Context) -> RecordService:
    """Return the record service of the program."""
    return get_dependencies(ctx).service


def get_store(ctx: typer.Context) -> YamlStore:
    """Return the store of the program."""
    return get_dependencies(ctx).store


def get_actor(ctx: typer.Context) -> User:
    """Return the user that runs the command.

    Raises:
        typer.Exit: with code 401 if the user is not set or unknown.
    """
    err_console = Console(stderr=True)
    identifier = ctx.obj.get("user")
    if not identifier:
        err_console.print(
            "Select the user with --user or the RECORD_GUARD_USER environment variable"
        )
        raise typer.Exit(code=401)
    try:
        return get_store(ctx).find_user(identifier)
    except (NotFoundError, TooManyError) as error:
        err_console.print(str(error))
        raise typer.Exit(code=401) from error
