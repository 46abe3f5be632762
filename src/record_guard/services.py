"""Define all the orchestration functionality required by the program to work.

Classes and functions that connect the different domain model objects with the adapters
to authorize, protect and reveal the records of the users.

Every operation authorizes the actor before touching the record, and returns an
`AccessDenied` or `NotFound` outcome instead of raising when the actor can't do it.
"""

import logging
import uuid
from typing import TYPE_CHECKING, Dict, List, Optional, Union

from .exceptions import DecryptionError, NotFoundError
from .model.auth import Action, Authorizer, Group, GroupID, Role, User, UserID
from .model.lock import PasscodeGate, mask_if_locked
from .model.outcomes import (
    AccessDenied,
    DecryptionFailure,
    Denial,
    NotFound,
    PasscodeRequired,
    RevealError,
    Unlocked,
)
from .model.record import Permission, Record, RecordID, RecordKind

if TYPE_CHECKING:
    from .adapters import Cipher, YamlStore

log = logging.getLogger(__name__)


def new_id() -> str:
    """Return a new identifier for a record or group."""
    return uuid.uuid4().hex[:12]


class RecordService:
    """Authorize and protect the operations on records and groups."""

    def __init__(
        self, store: "YamlStore", cipher: "Cipher", gate: PasscodeGate
    ) -> None:
        """Set the adapters.

        Args:
            store: adapter of the persistence of the records.
            cipher: adapter of the encryption of the sensitive fields.
            gate: passcode verifier of the locked records.
        """
        self.store = store
        self.cipher = cipher
        self.gate = gate
        self.authorizer = Authorizer(load_group=store.load_group)

    def authorize(
        self, actor: User, target: Union[Record, Group], action: Action
    ) -> bool:
        """Return if the actor can do the action on the record or group."""
        return self.authorizer.authorize(actor, target, action)

    @staticmethod
    def protect(record: Record) -> Record:
        """Return the view of a record that can be sent to a user.

        The sensitive fields are masked if the record is locked and the passcode
        hash is removed. Encrypted fields are not decrypted.
        """
        return mask_if_locked(record, unlocked=False).model_copy(
            update={"lock_passcode": None}
        )

    def reveal(
        self,
        actor: User,
        record_id: RecordID,
        candidate: Optional[str] = None,
        scope_key: Optional[str] = None,
    ) -> Union[Record, RevealError]:
        """Return the readable content of a record.

        The steps are done in order: check that the record exists, authorize the
        read, verify the passcode if the record is locked and decrypt it if it's
        encrypted.

        Args:
            actor: user that wants to read the record.
            record_id: id of the record.
            candidate: passcode to unlock the record.
            scope_key: key used to count the failed attempts, the actor id by
                default.
        """
        record = self._load_for(actor, record_id, Action.READ)
        if not isinstance(record, Record):
            return record

        if record.is_locked:
            scope_key = scope_key or actor.id
            if not self.gate.is_open(record.id, scope_key):
                if candidate is None:
                    return PasscodeRequired()
                outcome = self.gate.verify_passcode(record, candidate, scope_key)
                if not isinstance(outcome, Unlocked):
                    return outcome

        if record.is_encrypted:
            try:
                record = self.cipher.decrypt_record(record)
            except DecryptionError as error:
                log.error(
                    f"Could not decrypt record {record.id} requested by "
                    f"{actor.id}: {error}"
                )
                return DecryptionFailure()

        return record.model_copy(update={"lock_passcode": None})

    def accessible_records(self, actor: User) -> List[Record]:
        """Return the protected view of the records the actor can read."""
        return [
            self.protect(record)
            for record in self.store.list_records()
            if self.authorizer.can_read(actor, record)
        ]

    # R0913: too many arguments, but they are the fields of the record
    def create_record(  # noqa: R0913
        self,
        actor: User,
        title: str,
        kind: RecordKind = RecordKind.NOTE,
        fields: Optional[Dict[str, str]] = None,
        group: Optional[GroupID] = None,
        encrypt: bool = False,
        passcode: Optional[str] = None,
        tags: Optional[List[str]] = None,
        notes: Optional[str] = None,
    ) -> Union[Record, Denial]:
        """Create a record owned by the actor.

        Args:
            actor: user that will own the record.
            title: title of the record.
            kind: whether it's a note or a password entry.
            fields: values of the sensitive fields of the record.
            group: group to share the record with, the actor must belong to it.
            encrypt: encrypt the sensitive fields at rest.
            passcode: lock the record with this passcode.
            tags: labels of the record.
            notes: free text of a password entry.

        Raises:
            ValueError: if a field doesn't belong to the kind of record or the
                passcode is empty.
            EncryptionError: if a field can't be encrypted.
        """
        if group is not None:
            denial = self._check_group_target(actor, group)
            if denial is not None:
                return denial

        record = Record(
            id=new_id(),
            kind=kind,
            title=title,
            owner=actor.id,
            group=group,
            tags=tags or [],
            notes=notes,
        )
        self._set_fields(record, fields or {})
        if passcode is not None:
            record.set_lock(passcode)
        if encrypt:
            record = self.cipher.encrypt_record(record)

        self.store.save_record(record)
        log.info(f"Created {kind.value} {record.id} owned by {actor.id}")
        return self.protect(record)

    # R0913: too many arguments, but they are the fields of the record
    def update_record(  # noqa: R0913
        self,
        actor: User,
        record_id: RecordID,
        fields: Optional[Dict[str, str]] = None,
        title: Optional[str] = None,
        tags: Optional[List[str]] = None,
        notes: Optional[str] = None,
    ) -> Union[Record, Denial]:
        """Change the content of a record.

        New values of encrypted records are encrypted before being stored.

        Raises:
            ValueError: if a field doesn't belong to the kind of record.
            EncryptionError: if a field can't be encrypted.
        """
        record = self._load_for(actor, record_id, Action.WRITE)
        if not isinstance(record, Record):
            return record

        fields = fields or {}
        if record.is_encrypted:
            fields = {
                field: self.cipher.encrypt_field(value)
                for field, value in fields.items()
            }
        self._set_fields(record, fields)
        if title is not None:
            record.title = title
        if tags is not None:
            record.tags = tags
        if notes is not None:
            record.notes = notes

        return self._save(record, f"Updated record {record.id} by {actor.id}")

    def share(
        self,
        actor: User,
        record_id: RecordID,
        user_id: UserID,
        permission: Permission = Permission.VIEW,
    ) -> Union[Record, Denial]:
        """Share a record with a user.

        Raises:
            ValueError: if the permission is none.
        """
        record = self._load_for(actor, record_id, Action.WRITE)
        if not isinstance(record, Record):
            return record
        try:
            self.store.load_user(user_id)
        except NotFoundError:
            return NotFound()

        if record.grant_share(user_id, permission):
            self._save(record, f"{actor.id} shared record {record.id} with {user_id}")
        return self.protect(record)

    def unshare(
        self, actor: User, record_id: RecordID, user_id: UserID
    ) -> Union[Record, Denial]:
        """Revoke the direct share of a record with a user."""
        record = self._load_for(actor, record_id, Action.WRITE)
        if not isinstance(record, Record):
            return record

        if record.revoke_share(user_id):
            self._save(record, f"{actor.id} unshared record {record.id} with {user_id}")
        return self.protect(record)

    def lock(
        self, actor: User, record_id: RecordID, passcode: str
    ) -> Union[Record, Denial]:
        """Lock a record with a new passcode.

        The failed attempts of the previous passcode are forgotten.

        Raises:
            ValueError: if the passcode is empty.
        """
        record = self._load_for(actor, record_id, Action.WRITE)
        if not isinstance(record, Record):
            return record

        record.set_lock(passcode)
        self.gate.reset(record.id)
        return self._save(record, f"{actor.id} locked record {record.id}")

    def unlock(self, actor: User, record_id: RecordID) -> Union[Record, Denial]:
        """Remove the passcode lock of a record."""
        record = self._load_for(actor, record_id, Action.WRITE)
        if not isinstance(record, Record):
            return record

        record.clear_lock()
        self.gate.reset(record.id)
        return self._save(record, f"{actor.id} removed the lock of record {record.id}")

    def set_encryption(
        self, actor: User, record_id: RecordID, encrypted: bool
    ) -> Union[Record, Denial, DecryptionFailure]:
        """Encrypt or decrypt the sensitive fields of a record at rest.

        Raises:
            EncryptionError: if a field can't be encrypted.
        """
        record = self._load_for(actor, record_id, Action.WRITE)
        if not isinstance(record, Record):
            return record
        if record.is_encrypted == encrypted:
            return self.protect(record)

        if encrypted:
            record = self.cipher.encrypt_record(record)
        else:
            try:
                record = self.cipher.decrypt_record(record)
            except DecryptionError as error:
                log.error(f"Could not decrypt record {record.id}: {error}")
                return DecryptionFailure()

        state = "encrypted" if encrypted else "decrypted"
        return self._save(record, f"{actor.id} {state} record {record.id}")

    def move_to_group(
        self, actor: User, record_id: RecordID, group_id: Optional[GroupID]
    ) -> Union[Record, Denial]:
        """Change the group the record is shared with, None removes it."""
        record = self._load_for(actor, record_id, Action.WRITE)
        if not isinstance(record, Record):
            return record
        if group_id is not None:
            denial = self._check_group_target(actor, group_id)
            if denial is not None:
                return denial

        record.group = group_id
        return self._save(
            record, f"{actor.id} moved record {record.id} to group {group_id}"
        )

    def delete_record(self, actor: User, record_id: RecordID) -> Union[Record, Denial]:
        """Delete a record, only its owner or a system admin can do it.

        Returns:
            The protected view of the deleted record.
        """
        record = self._load_for(actor, record_id, Action.DELETE)
        if not isinstance(record, Record):
            return record

        self.store.delete_record(record.id)
        self.gate.reset(record.id)
        log.info(f"{actor.id} deleted record {record.id}")
        return self.protect(record)

    # Users

    def set_admin(
        self, actor: User, user_id: UserID, is_admin: bool
    ) -> Union[User, Denial]:
        """Grant or revoke the system admin role of a user.

        Only system admins can do it.

        Raises:
            ValueError: if it would leave the store without system admins.
        """
        user = self._load_user_for(actor, user_id)
        if not isinstance(user, User) or user.is_admin == is_admin:
            return user
        if not is_admin:
            self._check_other_admins(user)

        user.is_admin = is_admin
        self.store.save_user(user)
        log.info(f"{actor.id} set the system admin role of {user.id} to {is_admin}")
        return user

    def delete_user(self, actor: User, user_id: UserID) -> Union[User, Denial]:
        """Delete a user and the data it owns.

        The records and groups owned by the user are deleted, and the user is
        removed from the shares and memberships of the rest.

        Raises:
            ValueError: if the user is the last system admin.
        """
        user = self._load_user_for(actor, user_id)
        if not isinstance(user, User):
            return user
        if user.is_admin:
            self._check_other_admins(user)

        for record in self.store.list_records():
            if record.owner == user.id:
                self.store.delete_record(record.id)
                self.gate.reset(record.id)
            elif record.revoke_share(user.id):
                self.store.save_record(record)
        for group in [group.model_copy(deep=True) for group in self.store.groups]:
            if group.owner == user.id:
                self.store.delete_group(group.id)
            elif user.id in group.member_ids and group.remove_members([user.id]):
                self.store.save_group(group)

        self.store.delete_user(user.id)
        log.info(f"{actor.id} deleted user {user.id}")
        return user

    # Groups

    def create_group(self, actor: User, name: str, description: str = "") -> Group:
        """Create a group owned by the actor.

        Raises:
            ValueError: if there is already a group with that name.
        """
        try:
            self.store.find_group(name)
        except NotFoundError:
            group = Group(
                id=new_id(), name=name, description=description, owner=actor.id
            )
            self.store.save_group(group)
            log.info(f"Created group {name} ({group.id}) owned by {actor.id}")
            return group
        raise ValueError(f"The group {name} already exists.")

    def visible_groups(self, actor: User) -> List[Group]:
        """Return the groups the actor belongs to, or all of them for admins."""
        return [
            group.model_copy(deep=True)
            for group in self.store.groups
            if actor.is_admin or group.role_of(actor.id) != Role.NONE
        ]

    def add_members(
        self,
        actor: User,
        group_id: GroupID,
        user_ids: List[UserID],
        role: Role = Role.MEMBER,
    ) -> Union[Group, Denial]:
        """Add users to a group."""
        group = self._load_group_for(actor, group_id)
        if not isinstance(group, Group):
            return group
        try:
            for user_id in user_ids:
                self.store.load_user(user_id)
        except NotFoundError:
            return NotFound()

        if group.add_members(user_ids, role=role):
            self.store.save_group(group)
        return group

    def remove_members(
        self, actor: User, group_id: GroupID, user_ids: List[UserID]
    ) -> Union[Group, Denial]:
        """Remove users from a group."""
        group = self._load_group_for(actor, group_id)
        if not isinstance(group, Group):
            return group

        if group.remove_members(user_ids):
            self.store.save_group(group)
        return group

    def set_member_role(
        self, actor: User, group_id: GroupID, user_id: UserID, role: Role
    ) -> Union[Group, Denial]:
        """Change the role of a member of a group.

        Raises:
            ValueError: if the role can't be held by a member.
        """
        group = self._load_group_for(actor, group_id)
        if not isinstance(group, Group):
            return group
        try:
            changed = group.set_role(user_id, role)
        except NotFoundError:
            return NotFound()

        if changed:
            self.store.save_group(group)
        return group

    def rename_group(
        self,
        actor: User,
        group_id: GroupID,
        name: str,
        description: Optional[str] = None,
    ) -> Union[Group, Denial]:
        """Change the name and description of a group."""
        group = self._load_group_for(actor, group_id)
        if not isinstance(group, Group):
            return group

        log.info(f"Renaming group {group.name} to {name}")
        group.name = name
        if description is not None:
            group.description = description
        self.store.save_group(group)
        return group

    def delete_group(self, actor: User, group_id: GroupID) -> Union[Group, Denial]:
        """Delete a group.

        The records of the group are kept, and their group access is denied from
        then on.
        """
        group = self._load_group_for(actor, group_id)
        if not isinstance(group, Group):
            return group

        self.store.delete_group(group.id)
        log.info(f"{actor.id} deleted group {group.name} ({group.id})")
        return group

    def _load_for(
        self, actor: User, record_id: RecordID, action: Action
    ) -> Union[Record, Denial]:
        """Load a record and check the actor can do the action on it.

        The existence of the record is resolved first, so an unauthorized actor
        always gets AccessDenied for existent records.
        """
        try:
            record = self.store.load_record(record_id)
        except NotFoundError:
            log.debug(f"Record {record_id} requested by {actor.id} doesn't exist")
            return NotFound()

        if not self.authorizer.authorize(actor, record, action):
            log.info(f"Denied {action.value} of record {record.id} to {actor.id}")
            return AccessDenied()
        return record

    def _load_group_for(self, actor: User, group_id: GroupID) -> Union[Group, Denial]:
        """Load a group and check the actor can manage it."""
        try:
            group = self.store.load_group(group_id)
        except NotFoundError:
            return NotFound()

        if not self.authorizer.authorize(actor, group, Action.MANAGE_GROUP):
            log.info(f"Denied management of group {group.id} to {actor.id}")
            return AccessDenied()
        return group

    def _load_user_for(self, actor: User, user_id: UserID) -> Union[User, Denial]:
        """Load a user and check the actor can manage the users."""
        if not actor.is_admin:
            log.info(f"Denied management of user {user_id} to {actor.id}")
            return AccessDenied()
        try:
            return self.store.load_user(user_id)
        except NotFoundError:
            return NotFound()

    def _check_other_admins(self, user: User) -> None:
        """Check there is a system admin other than the user.

        Raises:
            ValueError: if the user is the last system admin.
        """
        if not any(
            other.is_admin and other.id != user.id for other in self.store.users
        ):
            raise ValueError(f"{user.name} is the last system admin.")

    def _check_group_target(
        self, actor: User, group_id: GroupID
    ) -> Optional[Denial]:
        """Check the actor can attach records to a group."""
        try:
            group = self.store.load_group(group_id)
        except NotFoundError:
            return NotFound()
        if actor.is_admin or group.role_of(actor.id) != Role.NONE:
            return None
        log.info(f"Denied adding records to group {group_id} to {actor.id}")
        return AccessDenied()

    @staticmethod
    def _set_fields(record: Record, fields: Dict[str, str]) -> None:
        """Set the values of the sensitive fields of a record.

        Raises:
            ValueError: if a field doesn't belong to the kind of record.
        """
        for field, value in fields.items():
            if field not in record.sensitive_fields:
                raise ValueError(
                    f"A {record.kind.value} doesn't have the field {field}, use one "
                    f"of: {', '.join(record.sensitive_fields)}"
                )
            setattr(record, field, value)

    def _save(self, record: Record, message: str) -> Record:
        """Store a changed record and return its protected view."""
        record.touch()
        self.store.save_record(record)
        log.info(message)
        return self.protect(record)
