"""Test the implementation of the YamlStore."""

import re
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from record_guard.adapters import YamlStore
from record_guard.exceptions import NotFoundError, StoreError, TooManyError
from record_guard.model.auth import User
from record_guard.model.lock import AttemptState

from ...factories import GroupFactory, RecordFactory

if TYPE_CHECKING:
    from ...conftest import FakeClock


def test_load_creates_the_store_file(tmp_path: Path) -> None:
    """
    Given: a path that doesn't exist
    When: loading the store from it
    Then: an empty store file is created
    """
    path = tmp_path / "data" / "store.yaml"
    store = YamlStore()

    store.load(str(path))

    assert path.exists()
    assert store.users == []
    assert store.path == path


def test_store_without_file_has_no_path() -> None:
    """
    Given: a store that was not loaded
    When: asking its path
    Then: an exception is raised
    """
    with pytest.raises(ValueError, match="has not been loaded"):
        YamlStore().path  # noqa: B018


def test_load_rejects_corrupt_files(tmp_path: Path) -> None:
    """
    Given: a store file that is not valid YAML
    When: loading the store
    Then: a store error that names the file is raised
    """
    path = tmp_path / "store.yaml"
    path.write_text("users: [ {id: 'bad id!', name: x}", encoding="utf-8")

    with pytest.raises(StoreError, match=re.escape(f"The store {path} could not")):
        YamlStore().load(str(path))


@pytest.mark.parametrize(
    "content",
    [
        "users:\n- name: Alice\n",
        "records:\n- id: note\n  title: Note\n  owner: alice\n  is_locked: true\n",
    ],
)
def test_load_rejects_invalid_contents(tmp_path: Path, content: str) -> None:
    """
    Given: a store file with a user without id, or a record locked without passcode
    When: loading the store
    Then: a store error is raised
    """
    path = tmp_path / "store.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(StoreError, match="could not be read"):
        YamlStore().load(str(path))


def test_save_fails_if_the_file_cant_be_written(
    store: YamlStore, store_file: Path
) -> None:
    """
    Given: a loaded store whose file has been replaced by a directory
    When: saving the store
    Then: a store error is raised
    """
    store_file.unlink()
    store_file.mkdir()

    with pytest.raises(StoreError, match="could not be saved"):
        store.save()


def test_changes_are_persisted(store: YamlStore, store_file: Path) -> None:
    """
    Given: a store with a user, a group and a record
    When: loading the file in another store
    Then: the objects are the same
    """
    user = store.add_user("Alice", "alice")
    group = GroupFactory.build(owner=user.id)
    record = RecordFactory.build(owner=user.id, group=group.id, tags=["work"])
    store.save_group(group)
    store.save_record(record)
    other = YamlStore()

    other.load(str(store_file))

    assert other.load_user("alice") == user
    assert other.load_group(group.id) == group
    assert other.load_record(record.id) == record


def test_add_user_rejects_duplicates(store: YamlStore) -> None:
    """
    Given: a store with a user
    When: adding a user with the same name
    Then: an exception is raised
    """
    store.add_user("Alice", "alice")

    with pytest.raises(ValueError, match="The user Alice is using the name Alice."):
        store.add_user("Alice", "alice2")


@pytest.mark.parametrize("identifier", ["alice", "Alice"])
def test_find_user_by_id_or_name(store: YamlStore, identifier: str) -> None:
    """
    Given: a store with a user
    When: finding it by id or name
    Then: the user is returned
    """
    store.add_user("Alice", "alice")

    result = store.find_user(identifier)

    assert result == User(id="alice", name="Alice")


def test_find_user_raises_error_if_ambiguous(store: YamlStore) -> None:
    """
    Given: a user whose name is the id of another user
    When: finding the user by that value
    Then: an exception is raised
    """
    store.add_user("Alice", "alice")
    store.add_user("alice2", "bob")
    store.save_user(User(id="alice2", name="Other"))

    with pytest.raises(TooManyError):
        store.find_user("alice2")


def test_find_group_raises_error_if_missing(store: YamlStore) -> None:
    """
    Given: an empty store
    When: finding a group
    Then: an exception is raised
    """
    with pytest.raises(NotFoundError, match="There is no group that matches team."):
        store.find_group("team")


def test_loaded_objects_are_copies(store: YamlStore) -> None:
    """
    Given: a stored record
    When: changing a loaded copy without saving it
    Then: the store keeps the original
    """
    record = RecordFactory.build(title="Original")
    store.save_record(record)

    loaded = store.load_record(record.id)
    loaded.title = "Changed"

    assert store.load_record(record.id).title == "Original"


def test_delete_record_removes_its_attempts(store: YamlStore) -> None:
    """
    Given: a record with an attempt state
    When: deleting the record
    Then: the record and the attempt state are gone
    """
    record = RecordFactory.build()
    store.save_record(record)
    state = AttemptState(record_id=record.id, scope_key="bob", failed_count=1)
    store.compare_and_swap_attempt_state(record.id, "bob", None, state)

    store.delete_record(record.id)

    assert store.list_records() == []
    assert store.load_attempt_state(record.id, "bob") is None
    with pytest.raises(NotFoundError):
        store.delete_record(record.id)


def test_delete_group_keeps_the_records(store: YamlStore) -> None:
    """
    Given: a group with a record
    When: deleting the group
    Then: the record still exists and points to the missing group
    """
    group = GroupFactory.build()
    record = RecordFactory.build(group=group.id)
    store.save_group(group)
    store.save_record(record)

    store.delete_group(group.id)

    assert store.groups == []
    assert store.load_record(record.id).group == group.id


def test_compare_and_swap_attempt_state(store: YamlStore, clock: "FakeClock") -> None:
    """
    Given: a stored attempt state
    When: swapping it with a stale expected value and then with the right one
    Then: only the second swap is applied
    """
    first = AttemptState(record_id="note", scope_key="bob", failed_count=1)
    second = first.model_copy(update={"failed_count": 2})
    locked = first.model_copy(update={"failed_count": 3, "locked_until": clock()})
    store.compare_and_swap_attempt_state("note", "bob", None, first)

    stale = store.compare_and_swap_attempt_state("note", "bob", None, locked)
    fresh = store.compare_and_swap_attempt_state("note", "bob", first, second)

    assert not stale
    assert fresh
    assert store.load_attempt_state("note", "bob") == second


def test_compare_and_swap_can_remove_the_state(store: YamlStore) -> None:
    """
    Given: a stored attempt state
    When: swapping it with None
    Then: the state is removed
    """
    state = AttemptState(record_id="note", scope_key="bob", failed_count=1)
    store.compare_and_swap_attempt_state("note", "bob", None, state)

    result = store.compare_and_swap_attempt_state("note", "bob", state, None)

    assert result
    assert store.attempts == []


def test_clear_attempt_states(store: YamlStore) -> None:
    """
    Given: attempt states of two scopes on a record
    When: clearing the states of the record twice
    Then: the first call removes them and the second reports no change
    """
    for scope_key in ("bob", "carol"):
        state = AttemptState(record_id="note", scope_key=scope_key, failed_count=1)
        store.compare_and_swap_attempt_state("note", scope_key, None, state)

    assert store.clear_attempt_states("note")
    assert not store.clear_attempt_states("note")
    assert store.attempts == []
