"""Define the different ways to expose the program functionality.

Functions:
    load_logger: Configure the Logging logger.
    exit_with: Print a denied outcome and finish the command.
"""

import logging
import sys
from typing import NoReturn

import typer
from rich.console import Console

from ..model.outcomes import (
    AccessDenied,
    DecryptionFailure,
    InvalidPasscode,
    LockedOut,
    NotFound,
    Outcome,
    PasscodeRequired,
)

EXIT_CODES = {
    NotFound: 404,
    AccessDenied: 403,
    PasscodeRequired: 401,
    InvalidPasscode: 401,
    LockedOut: 401,
    DecryptionFailure: 500,
}


def load_logger(verbose: bool = False) -> None:  # pragma no cover
    """Configure the Logging logger.

    Args:
        verbose: Set the logging level to Debug.
    """
    logging.addLevelName(logging.INFO, "[\033[36m+\033[0m]")
    logging.addLevelName(logging.ERROR, "[\033[31m+\033[0m]")
    logging.addLevelName(logging.DEBUG, "[\033[32m+\033[0m]")
    logging.addLevelName(logging.WARNING, "[\033[33m+\033[0m]")
    if verbose:
        logging.basicConfig(
            stream=sys.stderr,
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        logging.basicConfig(
            stream=sys.stderr, level=logging.INFO, format="%(levelname)s %(message)s"
        )


def exit_with(outcome: Outcome) -> NoReturn:
    """Print the message of a failed outcome and exit with its code."""
    Console(stderr=True).print(outcome.message)
    raise typer.Exit(code=EXIT_CODES.get(type(outcome), 1))
