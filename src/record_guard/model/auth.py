"""Define the users, groups and the authorization rules over the records."""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Callable, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ..exceptions import NotFoundError

if TYPE_CHECKING:
    from .record import Record

Name = str
Identifier = Annotated[str, Field(pattern=r"^[0-9a-zA-Z_.@-]+$")]
UserID = Identifier
GroupID = Identifier


log = logging.getLogger(__name__)


class Role(str, Enum):
    """Define the roles a user can have in a group."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    NONE = "none"

    @property
    def is_admin_equivalent(self) -> bool:
        """Return if the role grants the group administration rights."""
        return self in (Role.OWNER, Role.ADMIN)


MEMBER_ROLES = (Role.ADMIN, Role.MEMBER)


class Action(str, Enum):
    """Define the operations that can be authorized."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    MANAGE_GROUP = "manage_group"


class User(BaseModel):
    """Model an authenticated user.

    `is_admin` marks a system wide superuser that bypasses the record checks.
    """

    id: UserID
    name: Name
    is_admin: bool = False

    def match(self, identifier: str) -> bool:
        """Check if the user matches the identifier."""
        return identifier in (self.id, self.name)


class Member(BaseModel):
    """Model the membership of a user in a group."""

    user_id: UserID
    role: Role = Role.MEMBER

    @field_validator("role")
    @classmethod
    def check_member_role(cls, role: Role) -> Role:
        """Only admins and plain members can be stored in a group."""
        if role not in MEMBER_ROLES:
            raise ValueError(f"A group member can't have the role {role.value}")
        return role


class Group(BaseModel):
    """Model a group of users.

    The owner is treated as an admin even if it's not part of the members.
    """

    id: GroupID
    name: Name
    description: str = ""
    owner: UserID
    members: List[Member] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_members(self) -> "Group":
        """Make sure a user appears at most once in the members."""
        if len(self.member_ids) != len(set(self.member_ids)):
            raise ValueError(f"The group {self.name} has duplicated members")
        return self

    @property
    def member_ids(self) -> List[UserID]:
        """Return the ids of the members of the group."""
        return [member.user_id for member in self.members]

    def match(self, identifier: str) -> bool:
        """Check if the group matches the identifier."""
        return identifier in (self.id, self.name)

    def role_of(self, user_id: UserID) -> Role:
        """Return the role of a user in the group."""
        if user_id == self.owner:
            return Role.OWNER
        for member in self.members:
            if member.user_id == user_id:
                return member.role
        return Role.NONE

    def add_members(self, user_ids: List[UserID], role: Role = Role.MEMBER) -> bool:
        """Add a list of users to the group.

        Users that are already members keep their role, use `set_role` to change it.

        Returns:
            If there was any user added.
        """
        changed = False

        for user_id in user_ids:
            if user_id == self.owner:
                log.info(f"User {user_id} is the owner of the group {self.name}")
                continue
            if user_id in self.member_ids:
                continue
            log.info(f"Adding user {user_id} to group {self.name} as {role.value}")
            self.members.append(Member(user_id=user_id, role=role))
            changed = True

        return changed

    def remove_members(self, user_ids: List[UserID]) -> bool:
        """Remove a list of users from the group.

        Returns:
            If there was any user removed.
        """
        changed = False
        for user_id in user_ids:
            if user_id not in self.member_ids:
                log.info(f"User {user_id} is not part of the {self.name} group")
                continue
            log.info(f"Removing user {user_id} from group {self.name}")
            self.members = [
                member for member in self.members if member.user_id != user_id
            ]
            changed = True

        return changed

    def set_role(self, user_id: UserID, role: Role) -> bool:
        """Change the role of a member of the group.

        Returns:
            If the role changed.

        Raises:
            NotFoundError: if the user is not a member of the group.
            ValueError: if the role can't be held by a member.
        """
        if role not in MEMBER_ROLES:
            raise ValueError(f"A group member can't have the role {role.value}")
        for member in self.members:
            if member.user_id == user_id:
                if member.role == role:
                    return False
                log.info(
                    f"Changing role of {user_id} in group {self.name} "
                    f"from {member.role.value} to {role.value}"
                )
                member.role = role
                return True
        raise NotFoundError(f"User {user_id} is not a member of the group {self.name}")


class Authorizer:
    """Decide which actions can a user do on a record or group.

    The rules are evaluated in order, stopping on the first one that allows:

    * System admins can do everything.
    * The owner of the record can do everything.
    * A direct share allows reading, and writing if it has edit permission.
    * The group of the record allows reading to its members and writing to its
        owner and admins.

    Only the owner or a system admin can delete a record.
    """

    def __init__(self, load_group: Callable[[GroupID], Group]) -> None:
        """Set the group loader.

        Args:
            load_group: function that returns the group of an id, raising
                NotFoundError if it doesn't exist.
        """
        self.load_group = load_group

    def can_read(self, actor: User, record: "Record") -> bool:
        """Return if the actor can read the record."""
        if actor.is_admin or actor.id == record.owner:
            return True
        if record.permission_of(actor.id).allows_read:
            return True
        return self._group_role(actor, record) != Role.NONE

    def can_write(self, actor: User, record: "Record") -> bool:
        """Return if the actor can change the record."""
        if actor.is_admin or actor.id == record.owner:
            return True
        if record.permission_of(actor.id).allows_write:
            return True
        return self._group_role(actor, record).is_admin_equivalent

    @staticmethod
    def can_delete_record(actor: User, record: "Record") -> bool:
        """Return if the actor can delete the record."""
        return actor.is_admin or actor.id == record.owner

    @staticmethod
    def can_manage_group(actor: User, group: Group) -> bool:
        """Return if the actor can change the members, rename or delete the group."""
        return actor.is_admin or group.role_of(actor.id).is_admin_equivalent

    def authorize(
        self, actor: User, target: Union["Record", Group], action: Action
    ) -> bool:
        """Return if the actor is allowed to do the action on a record or group.

        `Action.MANAGE_GROUP` over a record is resolved against the group of the
        record, and it's denied if the record has no group or it can't be found.
        """
        if isinstance(target, Group):
            if action != Action.MANAGE_GROUP:
                raise ValueError(f"Action {action.value} doesn't apply to groups")
            allowed = self.can_manage_group(actor, target)
        elif action == Action.READ:
            allowed = self.can_read(actor, target)
        elif action == Action.WRITE:
            allowed = self.can_write(actor, target)
        elif action == Action.DELETE:
            allowed = self.can_delete_record(actor, target)
        else:
            group = self._record_group(target)
            allowed = group is not None and self.can_manage_group(actor, group)

        log.debug(
            f"{'Allowed' if allowed else 'Denied'} {action.value} on {target.id} "
            f"to {actor.id}"
        )
        return allowed

    def _group_role(self, actor: User, record: "Record") -> Role:
        """Return the role of the actor in the group of the record."""
        group = self._record_group(record)
        if group is None:
            return Role.NONE
        return group.role_of(actor.id)

    def _record_group(self, record: "Record") -> Optional[Group]:
        """Return the group of the record.

        A record that points to a group that doesn't exist is an inconsistency of the
        store, it's logged and treated as if the record had no group.
        """
        if record.group is None:
            return None
        try:
            return self.load_group(record.group)
        except NotFoundError:
            log.error(
                f"Record {record.id} references the group {record.group} "
                "which could not be loaded, denying group access"
            )
            return None
