# certledger/services/serial.py

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Callable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from certledger.constants import DEFAULT_RETRY_POLICY
from certledger.services.ledger_errors import (
    LedgerStorageError,
    NonUniqueSerialError,
    SerialExhaustedError,
)
from certledger.services.store import LedgerStore
from certledger.services.store_errors import StoreError

log = logging.getLogger(__name__)

T = TypeVar("T")


def encode_serial(serial: int) -> str:
    """
    Encode a serial for the certs.serial column.

    Serials are stored as canonical base-10 text so that any non-negative
    integer keeps full precision, and text equality matches integer equality.
    """
    if isinstance(serial, bool) or not isinstance(serial, int):
        raise TypeError(f"Serial must be an int, got {type(serial).__name__}")
    if serial < 0:
        raise ValueError(f"Serial must be non-negative, got {serial}")
    return str(serial)

def decode_serial(value: str) -> int:
    """ Decode a certs.serial column value """
    return int(value)


class RetryPolicy(BaseModel):
    """
    Bounded, jittered backoff used when a serial candidate collides.

    The n-th retry sleeps min(max_delay, base_delay * multiplier ** (n - 1)),
    stretched by up to `jitter` of itself. Allocation gives up after
    `max_attempts` tries, or once `deadline` seconds have elapsed.
    """
    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=DEFAULT_RETRY_POLICY['max_attempts'], ge=1)
    base_delay: float = Field(default=DEFAULT_RETRY_POLICY['base_delay'], ge=0)
    max_delay: float = Field(default=DEFAULT_RETRY_POLICY['max_delay'], ge=0)
    multiplier: float = Field(default=DEFAULT_RETRY_POLICY['multiplier'], ge=1)
    jitter: float = Field(default=DEFAULT_RETRY_POLICY['jitter'], ge=0, le=1)
    deadline: Optional[float] = Field(default=DEFAULT_RETRY_POLICY['deadline'], gt=0)

    @model_validator(mode="after")
    def _check_delays(self) -> "RetryPolicy":
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must not be smaller than base_delay")
        return self

    def delay(self, attempt: int, rand: float = 0.0) -> float:
        """
        Sleep time after the given failed attempt (1-based).

        Args:
            attempt (int): The attempt that just failed
            rand (float): A random draw in [0, 1) used for jitter
        """
        backoff = min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))
        return backoff * (1 + self.jitter * rand)


class SerialAllocator:
    """
    Hands out certificate serial numbers derived from the nanosecond wall clock.

    Candidates from one allocator strictly increase: when the clock has not
    moved past the previous candidate (same tick, or stepped back) the next
    integer is used instead. A candidate is rejected with NonUniqueSerialError
    only when a certificate already carries it, and the retry loop absorbs
    those rejections according to the RetryPolicy.

    The pre-check in try_allocate() cannot stop another writer from inserting
    the same serial before the caller does. Callers that record a certificate
    should go through CertificateLedger.issue_certificate(), which relies on
    the certs.serial UNIQUE constraint instead.
    """

    def __init__(self, store: LedgerStore, policy: Optional[RetryPolicy] = None, *,
                 clock: Callable[[], int] = time.time_ns,
                 sleep: Callable[[float], None] = time.sleep,
                 monotonic: Callable[[], float] = time.monotonic,
                 rand: Callable[[], float] = random.random) -> None:
        self.store = store
        self.policy = policy or RetryPolicy()
        self._clock = clock
        self._sleep = sleep
        self._monotonic = monotonic
        self._rand = rand
        self._lock = threading.Lock()
        self._last: Optional[int] = None

    def next_candidate(self) -> int:
        """
        Draw a serial from the clock without consulting the store.

        A reading that does not move past the last candidate yields the last
        candidate plus one, so a clock that stalls or steps back never blocks
        allocation.
        """
        reading = int(self._clock())

        with self._lock:
            if self._last is not None and reading <= self._last:
                candidate = self._last + 1
                log.debug("Clock reading %d behind last serial %d, using %d",
                          reading, self._last, candidate)
            else:
                candidate = reading
            self._last = candidate

        return candidate

    def try_allocate(self) -> int:
        """
        Make a single allocation attempt.

        Raises:
            NonUniqueSerialError: The candidate is already taken; retry later
            LedgerStorageError: The uniqueness query failed
        """
        serial = self.next_candidate()

        try:
            row = self.store.fetch_one(
                "SELECT COUNT(*) FROM certs WHERE serial = ?", (encode_serial(serial),)
            )
        except StoreError as store_error:
            raise LedgerStorageError("allocate", f"serial {serial}", store_error) from store_error

        if row and row[0]:
            raise NonUniqueSerialError(f"serial {serial} already issued")

        return serial

    def allocate(self) -> int:
        """
        Return a serial not held by any recorded certificate.

        Raises:
            SerialExhaustedError: The retry policy ran out
            LedgerStorageError: The store failed
        """
        return self.retry(self.try_allocate)

    def retry(self, attempt: Callable[[], T]) -> T:
        """
        Call `attempt` until it stops raising NonUniqueSerialError.

        Any other exception propagates straight away. No transaction is held
        while sleeping between attempts.
        """
        started = self._monotonic()
        tries = 0

        while True:
            tries += 1
            try:
                return attempt()
            except NonUniqueSerialError as collision:
                delay = self.policy.delay(tries, self._rand())
                elapsed = self._monotonic() - started
                deadline = self.policy.deadline

                if tries >= self.policy.max_attempts or (
                        deadline is not None and elapsed + delay > deadline):
                    log.warning("Giving up on serial allocation after %d attempt(s)", tries)
                    raise SerialExhaustedError(tries) from collision

                log.debug("Serial collision (%s), retrying in %.6fs", collision, delay)
                self._sleep(delay)
