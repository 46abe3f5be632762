"""Store the classes and fixtures used throughout the tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from typer.testing import CliRunner

from record_guard.adapters import Cipher, YamlStore
from record_guard.model.auth import Group, User
from record_guard.model.lock import PasscodeGate
from record_guard.services import RecordService

ENCRYPTION_KEY = "correct horse battery staple"


class FakeClock:
    """Return a time that only moves when the tests say so."""

    def __init__(self, now: datetime) -> None:
        """Set the starting time."""
        self.now = now

    def __call__(self) -> datetime:
        """Return the current fake time."""
        return self.now

    def advance(self, **kwargs: float) -> None:
        """Move the time forward, it accepts the arguments of timedelta."""
        self.now += timedelta(**kwargs)


@pytest.fixture(name="clock")
def clock_() -> FakeClock:
    """Create a clock stopped at a known time."""
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture(name="store_file")
def store_file_(tmp_path: Path) -> Path:
    """Return the path to the store file of the tests."""
    return tmp_path / "store.yaml"


@pytest.fixture(name="store")
def store_(store_file: Path) -> YamlStore:
    """Create an empty store."""
    store = YamlStore()
    store.load(str(store_file))
    return store


@pytest.fixture(name="cipher")
def cipher_() -> Cipher:
    """Create the cipher of the tests."""
    return Cipher(ENCRYPTION_KEY)


@pytest.fixture(name="gate")
def gate_(store: YamlStore, clock: FakeClock) -> PasscodeGate:
    """Create a passcode gate with the default lockout policy."""
    return PasscodeGate(store, clock=clock)


@pytest.fixture(name="service")
def service_(store: YamlStore, cipher: Cipher, gate: PasscodeGate) -> RecordService:
    """Create the record service."""
    return RecordService(store, cipher, gate)


@pytest.fixture(name="admin")
def admin_(store: YamlStore) -> User:
    """Create the system admin."""
    return store.add_user("Admin", "admin", is_admin=True)


@pytest.fixture(name="alice")
def alice_(store: YamlStore) -> User:
    """Create a user that owns records and groups."""
    return store.add_user("Alice", "alice")


@pytest.fixture(name="bob")
def bob_(store: YamlStore) -> User:
    """Create a user that receives shares."""
    return store.add_user("Bob", "bob")


@pytest.fixture(name="carol")
def carol_(store: YamlStore) -> User:
    """Create a user without any access."""
    return store.add_user("Carol", "carol")


@pytest.fixture(name="team")
def team_(service: RecordService, alice: User, bob: User) -> Group:
    """Create a group owned by alice where bob is a plain member."""
    group = service.create_group(alice, "team", "Alice's team")
    result = service.add_members(alice, group.id, [bob.id])
    assert isinstance(result, Group)
    return result


@pytest.fixture(name="cli_runner")
def runner_(store_file: Path, admin: User) -> CliRunner:
    """Configure the typer cli runner acting as the system admin."""
    return CliRunner(
        env={
            "RECORD_GUARD_ENCRYPTION_KEY": ENCRYPTION_KEY,
            "RECORD_GUARD_STORE_PATH": str(store_file),
            "RECORD_GUARD_USER": admin.id,
            "RECORD_GUARD_CONFIG": None,
            "RECORD_GUARD_PASSCODE": None,
        }
    )
