"""Bounded-wait mutual exclusion around engine operations.

Every mutating command runs inside ``lock.hold(operation)``. ``LocalLock``
serialises callers within one process; ``DynamoLeaseLock`` stores a lease
item in the pairing table so several operator processes can share it.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Final

from botocore.exceptions import ClientError

from .errors import LockTimeoutError
from .models import TournamentConfig

log: Final = logging.getLogger("pairing-engine.lock")

DEFAULT_LOCK_TIMEOUT = 30.0
DEFAULT_LEASE_SECONDS = 120
DEFAULT_POLL_INTERVAL = 0.25


class _BaseLock:
    timeout: float

    def acquire(self, operation: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def release(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        self.acquire(operation)
        try:
            yield
        finally:
            self.release()


class LocalLock(_BaseLock):
    """Process-wide lock backed by ``threading.Lock``."""

    def __init__(self, timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self.timeout = timeout
        self._lock = threading.Lock()

    def acquire(self, operation: str) -> None:
        if not self._lock.acquire(timeout=self.timeout):
            raise LockTimeoutError(
                f"Another operator is busy; try again shortly ({operation})"
            )
        log.debug("Lock acquired for %s", operation)

    def release(self) -> None:
        self._lock.release()


class DynamoLeaseLock(_BaseLock):
    """Lease stored as the ``LOCK`` item of a tournament partition.

    The lease is taken with a conditional put that only succeeds when no lease
    exists or the previous one expired, so a crashed holder cannot block the
    tournament for longer than ``lease_seconds``.
    """

    SK_VALUE: Final[str] = "LOCK"

    def __init__(
        self,
        table,
        tournament_id: str,
        *,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._table = table
        self.tournament_id = tournament_id
        self.timeout = timeout
        self.lease_seconds = lease_seconds
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self._owner: str | None = None

    def key(self) -> dict[str, str]:
        return {
            "pk": TournamentConfig.PK_TEMPLATE % self.tournament_id,
            "sk": self.SK_VALUE,
        }

    def _try_put(self, owner: str, operation: str) -> bool:
        now = int(self._clock())
        item: dict[str, object] = self.key()
        item.update(
            {
                "owner": owner,
                "operation": operation,
                "expires_at": now + self.lease_seconds,
            }
        )
        try:
            self._table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(pk) OR expires_at < :now",
                ExpressionAttributeValues={":now": now},
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code == "ConditionalCheckFailedException":
                return False
            raise
        return True

    def acquire(self, operation: str) -> None:
        owner = uuid.uuid4().hex
        deadline = self._clock() + self.timeout
        while True:
            if self._try_put(owner, operation):
                self._owner = owner
                log.debug("Lease %s acquired for %s", owner, operation)
                return
            if self._clock() >= deadline:
                raise LockTimeoutError(
                    f"Another operator is busy; try again shortly ({operation})"
                )
            self._sleep(self.poll_interval)

    def release(self) -> None:
        owner, self._owner = self._owner, None
        if owner is None:
            return
        try:
            self._table.delete_item(
                Key=self.key(),
                ConditionExpression="#owner = :owner",
                ExpressionAttributeNames={"#owner": "owner"},
                ExpressionAttributeValues={":owner": owner},
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code != "ConditionalCheckFailedException":
                raise
            log.warning("Lease %s expired before release", owner)


__all__ = [
    "DEFAULT_LEASE_SECONDS",
    "DEFAULT_LOCK_TIMEOUT",
    "DynamoLeaseLock",
    "LocalLock",
]
