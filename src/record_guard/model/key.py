"""Define the model of the secret objects."""

from typing import Annotated, Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from pydantic import Field

PasscodeHash = Annotated[
    str,
    Field(
        pattern=(
            r"^\$argon2id\$v=[0-9]+\$m=[0-9]+,t=[0-9]+,p=[0-9]+"
            r"\$[A-Za-z0-9+/]+\$[A-Za-z0-9+/]+$"
        )
    ),
]

hasher = PasswordHasher()


def hash_passcode(passcode: str) -> str:
    """Return the salted argon2id hash of a passcode.

    Surrounding whitespace is not part of the passcode.

    Raises:
        ValueError: if the passcode is empty.
    """
    passcode = passcode.strip()
    if not passcode:
        raise ValueError("The passcode can't be empty.")
    return hasher.hash(passcode)


def passcode_matches(candidate: Optional[str], passcode_hash: str) -> bool:
    """Check if a candidate passcode matches a stored hash.

    Args:
        candidate: clear text passcode provided by the user.
        passcode_hash: value returned by `hash_passcode`.
    """
    if candidate is None or not candidate.strip():
        return False

    try:
        return hasher.verify(passcode_hash, candidate.strip())
    except (VerificationError, InvalidHashError):
        return False
