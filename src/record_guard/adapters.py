"""Define the adapters of the encryption backend and the record store."""

import base64
import binascii
import logging
import threading
from pathlib import Path
from typing import Any, List, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from pydantic import BaseModel, Field, PrivateAttr, ValidationError
from ruyaml import YAML
from ruyaml.error import YAMLError

from .exceptions import (
    ConfigurationError,
    DecryptionError,
    EncryptionError,
    NotFoundError,
    StoreError,
    TooManyError,
)
from .model.auth import Group, GroupID, User, UserID
from .model.lock import AttemptState
from .model.record import Record, RecordID

log = logging.getLogger(__name__)

KEY_INFO = b"record-guard field encryption"


class Cipher:
    """Define the adapter of the symmetric encryption of record fields.

    It uses Fernet tokens (AES-128-CBC with an HMAC-SHA256 signature), so a
    tampered ciphertext or a wrong key fail to decrypt instead of returning
    garbage. All the records share the same key.
    """

    def __init__(self, key: str) -> None:
        """Derive the Fernet key from the configured secret.

        Args:
            key: opaque secret of the process.

        Raises:
            ConfigurationError: if the key is empty.
        """
        if not key:
            raise ConfigurationError("The encryption key can't be empty.")
        self._fernet = Fernet(self.derive_key(key))

    def __repr__(self) -> str:
        """Return a string that represents the object without the key."""
        return "Cipher(key=**********)"

    @staticmethod
    def derive_key(key: str) -> bytes:
        """Return the Fernet key that corresponds to the secret.

        Args:
            key: opaque secret of the process.
        """
        derived = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=None,
            info=KEY_INFO,
        ).derive(key.encode("utf-8"))
        return base64.urlsafe_b64encode(derived)

    def encrypt_field(self, plaintext: str) -> str:
        """Encrypt the value of a field.

        Args:
            plaintext: text to encrypt.

        Raises:
            EncryptionError: if the plaintext is not a non empty string.
        """
        if not isinstance(plaintext, str):
            raise EncryptionError("Only text fields can be encrypted.")
        if not plaintext:
            raise EncryptionError("The text to encrypt can't be empty.")

        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt_field(self, ciphertext: str) -> str:
        """Decrypt the value of a field.

        Args:
            ciphertext: value returned by `encrypt_field`.

        Raises:
            DecryptionError: if the ciphertext is corrupt, was encrypted with
                another key or holds an empty text.
        """
        if not isinstance(ciphertext, str) or not ciphertext:
            raise DecryptionError("The encrypted text must be a non empty string.")

        try:
            data = self._fernet.decrypt(ciphertext.encode("ascii"))
            plaintext = data.decode("utf-8")
        except (InvalidToken, UnicodeError, binascii.Error) as error:
            raise DecryptionError(
                "The encrypted text could not be decrypted."
            ) from error

        if not plaintext:
            raise DecryptionError("The decrypted text is empty.")

        return plaintext

    def encrypt_record(self, record: Record) -> Record:
        """Return a copy of the record with the sensitive fields encrypted.

        Raises:
            EncryptionError: if any of the fields can't be encrypted.
        """
        if record.is_encrypted:
            log.debug(f"Record {record.id} is already encrypted")
            return record.model_copy(deep=True)

        update = {
            field: self.encrypt_field(getattr(record, field))
            for field in record.sensitive_fields
            if getattr(record, field) is not None
        }
        update["is_encrypted"] = True
        return record.model_copy(update=update, deep=True)

    def decrypt_record(self, record: Record) -> Record:
        """Return a copy of the record with the sensitive fields decrypted.

        Raises:
            DecryptionError: if any of the fields can't be decrypted.
        """
        if not record.is_encrypted:
            return record.model_copy(deep=True)

        update = {
            field: self.decrypt_field(getattr(record, field))
            for field in record.sensitive_fields
            if getattr(record, field) is not None
        }
        update["is_encrypted"] = False
        return record.model_copy(update=update, deep=True)


def encrypt_field(plaintext: str, key: str) -> str:
    """Encrypt the value of a field with a key.

    Raises:
        EncryptionError: if the plaintext is not a non empty string.
    """
    return Cipher(key).encrypt_field(plaintext)


def decrypt_field(ciphertext: str, key: str) -> str:
    """Decrypt the value of a field with a key.

    Raises:
        DecryptionError: if the ciphertext can't be decrypted with the key.
    """
    return Cipher(key).decrypt_field(ciphertext)


class YamlStore(BaseModel):
    """Define the adapter of the store of users, groups, records and attempts.

    Everything is kept in one YAML file. The methods are serialized by a lock so
    the compare and swap of the attempt states is atomic inside the process.
    Loaded objects are copies, changes need to be saved explicitly.
    """

    users: List[User] = Field(default_factory=list)
    groups: List[Group] = Field(default_factory=list)
    records: List[Record] = Field(default_factory=list)
    attempts: List[AttemptState] = Field(default_factory=list)
    _path: Optional[Path] = PrivateAttr(default=None)
    _lock: Any = PrivateAttr(default_factory=threading.RLock)

    @property
    def path(self) -> Path:
        """Return the path to the store file.

        Raises:
            ValueError: if the store hasn't been loaded from a file.
        """
        if self._path is None:
            raise ValueError("The store has not been loaded from a file.")
        return self._path

    def load(self, filename: str) -> None:
        """Load the contents of a store file.

        If the file doesn't exist it's created empty.

        Raises:
            StoreError: if the file can't be read or its contents are invalid.
        """
        path = Path(filename).expanduser()
        with self._lock:
            self._path = path
            if not path.exists():
                log.debug(f"Creating the store file {path}")
                try:
                    path.parent.mkdir(parents=True, exist_ok=True)
                except OSError as error:
                    raise StoreError(
                        f"The store {path} could not be created"
                    ) from error
                self.save()
                return

            try:
                data = YAML(typ="safe", pure=True).load(path) or {}
                loaded = self.model_validate(data)
            except (OSError, YAMLError, ValidationError) as error:
                raise StoreError(f"The store {path} could not be read") from error
            for field in type(self).model_fields:
                setattr(self, field, getattr(loaded, field))

    def reload(self) -> None:
        """Reload the contents of the store."""
        self.load(str(self.path))

    def save(self) -> None:
        """Save the contents of the store.

        Raises:
            StoreError: if the file can't be written.
        """
        with self._lock:
            try:
                with open(self.path, "w+", encoding="utf-8") as file_cursor:
                    yaml = YAML()
                    yaml.default_flow_style = False
                    yaml.dump(self.model_dump(mode="json"), file_cursor)
            except (OSError, YAMLError) as error:
                raise StoreError(f"The store {self.path} could not be saved") from error

    # Users

    def add_user(self, name: str, user_id: UserID, is_admin: bool = False) -> User:
        """Create a new user.

        Raises:
            ValueError: if the id or name are already in use.
        """
        with self._lock:
            for attribute, value in [("id", user_id), ("name", name)]:
                for user in self.users:
                    if user.match(value):
                        raise ValueError(
                            f"The user {user.name} is using the {attribute} {value}."
                        )
            new_user = User(id=user_id, name=name, is_admin=is_admin)
            self.users.append(new_user)
            self.save()
        return new_user.model_copy()

    def load_user(self, user_id: UserID) -> User:
        """Return the user with the id.

        Raises:
            NotFoundError: if there is no user with that id.
        """
        with self._lock:
            for user in self.users:
                if user.id == user_id:
                    return user.model_copy()
        raise NotFoundError(f"There is no user with id {user_id}.")

    def find_user(self, identifier: str) -> User:
        """Return the user that matches the identifier, either the id or the name.

        Raises:
            NotFoundError: if no user matches the identifier
            TooManyError: if more than one user matches the identifier
        """
        with self._lock:
            user_match = [user for user in self.users if user.match(identifier)]

        if len(user_match) == 0:
            raise NotFoundError(f"There is no user that matches {identifier}.")
        if len(user_match) == 1:
            return user_match[0].model_copy()
        raise TooManyError(
            f"More than one user matched the selected criteria {identifier}."
        )

    def save_user(self, user: User) -> None:
        """Create or replace a user."""
        with self._lock:
            self._replace("users", user)

    def delete_user(self, user_id: UserID) -> None:
        """Remove a user.

        The records, groups and shares that reference it are left untouched.

        Raises:
            NotFoundError: if there is no user with that id.
        """
        with self._lock:
            self.load_user(user_id)
            self.users = [user for user in self.users if user.id != user_id]
            self.save()

    # Groups

    def load_group(self, group_id: GroupID) -> Group:
        """Return the group with the id.

        Raises:
            NotFoundError: if there is no group with that id.
        """
        with self._lock:
            for group in self.groups:
                if group.id == group_id:
                    return group.model_copy(deep=True)
        raise NotFoundError(f"There is no group with id {group_id}.")

    def find_group(self, identifier: str) -> Group:
        """Return the group that matches the identifier, either the id or the name.

        Raises:
            NotFoundError: if no group matches the identifier
            TooManyError: if more than one group matches the identifier
        """
        with self._lock:
            group_match = [group for group in self.groups if group.match(identifier)]

        if len(group_match) == 0:
            raise NotFoundError(f"There is no group that matches {identifier}.")
        if len(group_match) > 1:
            raise TooManyError(
                f"More than one group matched the selected criteria {identifier}."
            )
        return group_match[0].model_copy(deep=True)

    def save_group(self, group: Group) -> None:
        """Create or replace a group."""
        with self._lock:
            self._replace("groups", group)

    def delete_group(self, group_id: GroupID) -> None:
        """Remove a group.

        The records that reference it are left untouched.

        Raises:
            NotFoundError: if there is no group with that id.
        """
        with self._lock:
            self.load_group(group_id)
            self.groups = [group for group in self.groups if group.id != group_id]
            self.save()

    # Records

    def load_record(self, record_id: RecordID) -> Record:
        """Return the record with the id.

        Raises:
            NotFoundError: if there is no record with that id.
        """
        with self._lock:
            for record in self.records:
                if record.id == record_id:
                    return record.model_copy(deep=True)
        raise NotFoundError(f"There is no record with id {record_id}.")

    def list_records(self) -> List[Record]:
        """Return all the records of the store."""
        with self._lock:
            return [record.model_copy(deep=True) for record in self.records]

    def save_record(self, record: Record) -> None:
        """Create or replace a record."""
        with self._lock:
            self._replace("records", record)

    def delete_record(self, record_id: RecordID) -> None:
        """Remove a record and its attempt states.

        Raises:
            NotFoundError: if there is no record with that id.
        """
        with self._lock:
            self.load_record(record_id)
            self.records = [record for record in self.records if record.id != record_id]
            self.attempts = [
                state for state in self.attempts if state.record_id != record_id
            ]
            self.save()

    # Attempt states

    def load_attempt_state(
        self, record_id: RecordID, scope_key: str
    ) -> Optional[AttemptState]:
        """Return the attempt state of a scope on a record, if any."""
        with self._lock:
            for state in self.attempts:
                if state.record_id == record_id and state.scope_key == scope_key:
                    return state.model_copy()
        return None

    def compare_and_swap_attempt_state(
        self,
        record_id: RecordID,
        scope_key: str,
        expected: Optional[AttemptState],
        new: Optional[AttemptState],
    ) -> bool:
        """Replace the attempt state only if it still has the expected value.

        Args:
            record_id: id of the record.
            scope_key: identifier of who is trying to unlock the record.
            expected: state read before computing the new one.
            new: state to store, None removes it.

        Returns:
            If the state was replaced.
        """
        with self._lock:
            current = self.load_attempt_state(record_id, scope_key)
            if current != expected:
                return False
            if current is None and new is None:
                return True

            self.attempts = [
                state
                for state in self.attempts
                if not (state.record_id == record_id and state.scope_key == scope_key)
            ]
            if new is not None:
                self.attempts.append(new.model_copy())
            self.save()
        return True

    def clear_attempt_states(self, record_id: RecordID) -> bool:
        """Remove all the attempt states of a record.

        Returns:
            If any state was removed.
        """
        with self._lock:
            attempts = [
                state for state in self.attempts if state.record_id != record_id
            ]
            if len(attempts) == len(self.attempts):
                return False
            self.attempts = attempts
            self.save()
        return True

    def _replace(self, collection: str, element: BaseModel) -> None:
        """Insert or replace an element of a collection by its id and save."""
        elements = getattr(self, collection)
        for index, old in enumerate(elements):
            if old.id == element.id:
                elements[index] = element.model_copy(deep=True)
                break
        else:
            elements.append(element.model_copy(deep=True))
        self.save()
