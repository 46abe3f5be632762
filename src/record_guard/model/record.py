"""Define the records stored by the users and the shares between them."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from .auth import GroupID, Identifier, UserID
from .key import PasscodeHash, hash_passcode, passcode_matches

RecordID = Identifier

log = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Return the current time aware of the UTC timezone."""
    return datetime.now(timezone.utc)


class Permission(str, Enum):
    """Define the permissions that a direct share can grant."""

    VIEW = "view"
    EDIT = "edit"
    NONE = "none"

    @property
    def allows_read(self) -> bool:
        """Return if the permission lets the user read the record."""
        return self in (Permission.VIEW, Permission.EDIT)

    @property
    def allows_write(self) -> bool:
        """Return if the permission lets the user change the record."""
        return self == Permission.EDIT


class RecordKind(str, Enum):
    """Define the kinds of records."""

    NOTE = "note"
    PASSWORD = "password"  # nosec: it's the name of the kind, not a secret


SENSITIVE_FIELDS: Dict[RecordKind, Tuple[str, ...]] = {
    RecordKind.NOTE: ("content",),
    RecordKind.PASSWORD: ("username", "password"),
}


class Share(BaseModel):
    """Model the direct share of a record with a user."""

    user_id: UserID
    permission: Permission

    @field_validator("permission")
    @classmethod
    def check_permission(cls, permission: Permission) -> Permission:
        """A share must grant something."""
        if permission == Permission.NONE:
            raise ValueError("A share can't have the permission none")
        return permission


class Record(BaseModel):
    """Model a note or a password entry.

    The sensitive fields hold ciphertext when `is_encrypted` is True. `lock_passcode`
    holds the hash of the passcode that unlocks the record.
    """

    id: RecordID
    kind: RecordKind = RecordKind.NOTE
    title: str
    owner: UserID
    group: Optional[GroupID] = None
    shared_with: List[Share] = Field(default_factory=list)
    is_locked: bool = False
    lock_passcode: Optional[PasscodeHash] = None
    is_encrypted: bool = False
    content: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    last_modified: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_consistency(self) -> "Record":
        """Validate the invariants of the record."""
        user_ids = [share.user_id for share in self.shared_with]
        if len(user_ids) != len(set(user_ids)):
            raise ValueError(f"The record {self.id} is shared twice with a user")
        if self.lock_passcode is not None and not self.is_locked:
            raise ValueError(f"The record {self.id} has a passcode but isn't locked")
        if self.is_locked and self.lock_passcode is None:
            raise ValueError(f"The record {self.id} is locked without a passcode")
        return self

    @property
    def sensitive_fields(self) -> Tuple[str, ...]:
        """Return the names of the fields that are encrypted and masked."""
        return SENSITIVE_FIELDS[self.kind]

    def touch(self) -> None:
        """Update the modification date of the record."""
        self.last_modified = utcnow()

    def permission_of(self, user_id: UserID) -> Permission:
        """Return the permission granted to a user through a direct share."""
        for share in self.shared_with:
            if share.user_id == user_id:
                return share.permission
        return Permission.NONE

    def grant_share(self, user_id: UserID, permission: Permission) -> bool:
        """Share the record with a user.

        If the user already had a share, its permission is overwritten.

        Returns:
            If the shares changed.
        """
        share = Share(user_id=user_id, permission=permission)
        for index, existent in enumerate(self.shared_with):
            if existent.user_id == user_id:
                if existent.permission == permission:
                    log.info(
                        f"Record {self.id} is already shared with {user_id} "
                        f"with {permission.value} permission, skipping"
                    )
                    return False
                log.info(
                    f"Changing the permission of {user_id} on record {self.id} "
                    f"to {permission.value}"
                )
                self.shared_with[index] = share
                return True

        log.info(f"Sharing record {self.id} with {user_id} ({permission.value})")
        self.shared_with.append(share)
        return True

    def revoke_share(self, user_id: UserID) -> bool:
        """Remove the direct share of a user.

        Returns:
            If the user had a share.
        """
        shares = [share for share in self.shared_with if share.user_id != user_id]
        if len(shares) == len(self.shared_with):
            log.info(f"Record {self.id} is not shared with {user_id}")
            return False

        log.info(f"Revoking the share of record {self.id} with {user_id}")
        self.shared_with = shares
        return True

    def set_lock(self, passcode: str) -> None:
        """Lock the record with a passcode.

        Raises:
            ValueError: if the passcode is empty.
        """
        self.lock_passcode = hash_passcode(passcode)
        self.is_locked = True
        log.info(f"Locked record {self.id}")

    def clear_lock(self) -> None:
        """Remove the passcode lock of the record."""
        self.lock_passcode = None
        self.is_locked = False
        log.info(f"Removed the lock of record {self.id}")

    def check_passcode(self, candidate: Optional[str]) -> bool:
        """Check if the candidate passcode unlocks the record."""
        if not self.is_locked or self.lock_passcode is None:
            return False
        return passcode_matches(candidate, self.lock_passcode)
