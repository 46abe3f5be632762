"""Define the passcode lock of the records and the tracking of failed attempts."""

import logging
import threading
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Dict, Optional, Tuple

from pydantic import BaseModel, Field

from .outcomes import InvalidPasscode, LockedOut, PasscodeOutcome, Unlocked
from .record import Record, RecordID, utcnow

if TYPE_CHECKING:
    from ..adapters import YamlStore

LOCKED_SENTINEL = "🔒 This note is locked. Enter passcode to view."
MAX_ATTEMPTS = 3
COOLDOWN = timedelta(minutes=5)

Clock = Callable[[], datetime]

log = logging.getLogger(__name__)


def mask_if_locked(record: Record, unlocked: bool) -> Record:
    """Return a copy of the record with the sensitive fields hidden if it's locked.

    Args:
        record: record to mask.
        unlocked: if the passcode of the record has already been verified.
    """
    if not record.is_locked or unlocked:
        return record.model_copy(deep=True)

    masked = {
        field: LOCKED_SENTINEL
        for field in record.sensitive_fields
        if getattr(record, field) is not None
    }
    return record.model_copy(update=masked, deep=True)


class AttemptState(BaseModel):
    """Model the failed passcode attempts of a scope on a record.

    The scope is usually the user or session that tries to unlock the record.
    """

    record_id: RecordID
    scope_key: str
    failed_count: int = Field(default=0, ge=0)
    locked_until: Optional[datetime] = None

    def is_locked_out(self, now: datetime) -> bool:
        """Return if the scope can't try new passcodes yet."""
        return self.locked_until is not None and now < self.locked_until

    def has_expired(self, now: datetime) -> bool:
        """Return if the lockout has finished, so the state no longer applies."""
        return self.locked_until is not None and now >= self.locked_until

    def retry_after(self, now: datetime) -> timedelta:
        """Return the time left until the lockout finishes."""
        if self.locked_until is None:
            return timedelta(0)
        return max(self.locked_until - now, timedelta(0))


class PasscodeGate:
    """Verify passcodes of locked records, locking out after too many failures.

    The attempt states are stored through the compare and swap operation of the
    store, so concurrent attempts on the same record can't skip the lockout.

    Successful unlocks are not remembered unless `unlock_ttl` is positive, in
    which case a scope that unlocked a record doesn't need the passcode again
    during that time. That cache lives only in the memory of the process.
    """

    # R0913: too many arguments, but they're all configuration
    def __init__(  # noqa: R0913
        self,
        store: "YamlStore",
        max_attempts: int = MAX_ATTEMPTS,
        cooldown: timedelta = COOLDOWN,
        unlock_ttl: timedelta = timedelta(0),
        clock: Clock = utcnow,
    ) -> None:
        """Configure the gate.

        Args:
            store: adapter where the attempt states are kept.
            max_attempts: failed attempts that trigger the lockout.
            cooldown: duration of the lockout.
            unlock_ttl: time a successful unlock is remembered for a scope.
            clock: function that returns the current aware datetime.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts
        self.cooldown = cooldown
        self.unlock_ttl = unlock_ttl
        self.clock = clock
        self._open: Dict[Tuple[RecordID, str], datetime] = {}
        self._open_lock = threading.Lock()

    def verify_passcode(
        self, record: Record, candidate: Optional[str], scope_key: str
    ) -> PasscodeOutcome:
        """Check a candidate passcode of a locked record.

        While the scope is locked out the passcode is not even checked, and the
        attempt is not counted.

        Args:
            record: locked record to open.
            candidate: passcode given by the user.
            scope_key: identifier of who is trying, usually the user or session id.
        """
        now = self.clock()
        matches: Optional[bool] = None

        while True:
            stored = self.store.load_attempt_state(record.id, scope_key)
            current = self._live_state(stored, now)

            if current is not None and current.is_locked_out(now):
                log.warning(
                    f"Rejected passcode attempt on record {record.id} "
                    f"from {scope_key}: locked out"
                )
                return LockedOut(retry_after=current.retry_after(now))

            if matches is None:
                matches = record.check_passcode(candidate)

            if matches:
                new_state = None
            else:
                failed_count = (current.failed_count if current else 0) + 1
                new_state = AttemptState(
                    record_id=record.id,
                    scope_key=scope_key,
                    failed_count=failed_count,
                    locked_until=(
                        now + self.cooldown
                        if failed_count >= self.max_attempts
                        else None
                    ),
                )

            if self.store.compare_and_swap_attempt_state(
                record.id, scope_key, stored, new_state
            ):
                break
            log.debug(f"Attempt state of record {record.id} changed, retrying")

        if new_state is None:
            log.info(f"Record {record.id} unlocked by {scope_key}")
            self._remember_open(record.id, scope_key, now)
            return Unlocked(record=record)

        if new_state.locked_until is not None:
            log.warning(
                f"Too many failed passcode attempts on record {record.id} "
                f"from {scope_key}, locking out until {new_state.locked_until}"
            )
            return LockedOut(retry_after=new_state.retry_after(now))

        remaining = self.max_attempts - new_state.failed_count
        log.warning(
            f"Invalid passcode for record {record.id} from {scope_key}, "
            f"{remaining} attempts remaining"
        )
        return InvalidPasscode(remaining_attempts=remaining)

    def failed_count(self, record_id: RecordID, scope_key: str) -> int:
        """Return the number of failed attempts that currently apply to a scope."""
        state = self._live_state(
            self.store.load_attempt_state(record_id, scope_key), self.clock()
        )
        if state is None:
            return 0
        return state.failed_count

    def is_open(self, record_id: RecordID, scope_key: str) -> bool:
        """Return if the scope unlocked the record recently enough."""
        with self._open_lock:
            opened_at = self._open.get((record_id, scope_key))
            if opened_at is None:
                return False
            if self.clock() - opened_at >= self.unlock_ttl:
                del self._open[(record_id, scope_key)]
                return False
            return True

    def reset(self, record_id: RecordID) -> None:
        """Forget the failed attempts and unlocks of a record.

        Used when the lock of the record changes.
        """
        with self._open_lock:
            for key in [key for key in self._open if key[0] == record_id]:
                del self._open[key]
        if self.store.clear_attempt_states(record_id):
            log.info(f"Cleared the passcode attempts of record {record_id}")

    def _remember_open(
        self, record_id: RecordID, scope_key: str, now: datetime
    ) -> None:
        """Store the unlock if the gate is configured to remember them."""
        if self.unlock_ttl <= timedelta(0):
            return
        with self._open_lock:
            self._open[(record_id, scope_key)] = now

    @staticmethod
    def _live_state(
        state: Optional[AttemptState], now: datetime
    ) -> Optional[AttemptState]:
        """Return the state unless its lockout has already finished."""
        if state is not None and state.has_expired(now):
            return None
        return state
