"""Utilities to retrieve the information of the program version."""

import platform
import sys
from textwrap import dedent

import cryptography
import pydantic

__version__ = "0.1.0"


def version_info() -> str:
    """Display the version of the program, its main libraries and the platform."""
    return dedent(
        f"""\
        ------------------------------------------------------------------
             record_guard: {__version__}
             cryptography: {cryptography.__version__}
             pydantic: {pydantic.VERSION}
             Python: {sys.version.split(" ", maxsplit=1)[0]}
             Platform: {platform.platform()}
        ------------------------------------------------------------------"""
    )
