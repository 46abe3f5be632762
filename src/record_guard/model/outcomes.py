"""Define the expected outcomes of the operations that users can trigger.

Denials and passcode failures are part of the normal flow of the program, so
they're returned as values instead of raised.
"""

from datetime import timedelta
from typing import Union

from pydantic import BaseModel, ConfigDict

from .record import Record


class Outcome(BaseModel):
    """Model a user facing outcome."""

    model_config = ConfigDict(frozen=True)

    @property
    def message(self) -> str:
        """Return the text that can be shown to the user."""
        return "Unexpected outcome"


class AccessDenied(Outcome):
    """The actor is not allowed to do the operation.

    It doesn't tell why, so it can't be used to learn about the record.
    """

    @property
    def message(self) -> str:
        """Return the text that can be shown to the user."""
        return "Access denied"


class NotFound(Outcome):
    """The record or group doesn't exist."""

    @property
    def message(self) -> str:
        """Return the text that can be shown to the user."""
        return "Not found"


class PasscodeRequired(Outcome):
    """The record is locked and no passcode was given."""

    @property
    def message(self) -> str:
        """Return the text that can be shown to the user."""
        return "Passcode required"


class InvalidPasscode(Outcome):
    """The passcode didn't match and the actor has attempts left."""

    remaining_attempts: int

    @property
    def message(self) -> str:
        """Return the text that can be shown to the user."""
        return f"Invalid passcode. {self.remaining_attempts} attempts remaining."


class LockedOut(Outcome):
    """Too many failed passcode attempts."""

    retry_after: timedelta

    @property
    def message(self) -> str:
        """Return the text that can be shown to the user."""
        seconds = max(int(self.retry_after.total_seconds()), 0)
        return f"Too many incorrect attempts. Try again in {seconds} seconds."


class DecryptionFailure(Outcome):
    """The content of the record couldn't be read."""

    @property
    def message(self) -> str:
        """Return the text that can be shown to the user."""
        return "The record could not be read"


class Unlocked(Outcome):
    """The passcode matched."""

    record: Record

    @property
    def message(self) -> str:
        """Return the text that can be shown to the user."""
        return f"Unlocked record {self.record.id}"


PasscodeOutcome = Union[Unlocked, InvalidPasscode, LockedOut]
RevealError = Union[
    AccessDenied,
    NotFound,
    PasscodeRequired,
    InvalidPasscode,
    LockedOut,
    DecryptionFailure,
]
Denial = Union[AccessDenied, NotFound]
