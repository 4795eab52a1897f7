"""Upkeep scanning and application for automated vesting accrual.

Upkeep runs in two steps driven by an external trigger:

1. ``UpkeepScanner.scan`` is a pure read. Starting at the cursor it selects
   up to ``batch_size`` schedule indices that are due for an accrual.
2. ``UpkeepApplier.apply`` receives those indices back through an untrusted
   channel, re-checks every one of them against current state, credits one
   period to each and returns the next cursor position.

The index list travels between the two steps as a work descriptor: a big
endian ``u32`` count followed by ``count`` ``u64`` indices.
"""
import struct
from dataclasses import dataclass, field
from typing import List, Sequence

import structlog

from vestkeeper.services.accrual import checked_add, release_amount
from vestkeeper.services.errors import StaleOrInvalidBatch
from vestkeeper.services.schedule_store import ScheduleStore, VestingSchedule

logger = structlog.get_logger()

_COUNT = struct.Struct(">I")
_INDEX = struct.Struct(">Q")


def encode_work_descriptor(indices: Sequence[int]) -> bytes:
    """Pack an index list into a work descriptor."""
    return _COUNT.pack(len(indices)) + b"".join(_INDEX.pack(i) for i in indices)


def decode_work_descriptor(data: bytes, max_batch: int) -> List[int]:
    """
    Unpack and structurally validate a work descriptor.

    Args:
        data: Raw descriptor bytes as received from the trigger source
        max_batch: Largest accepted index count

    Returns:
        Strictly ascending list of indices

    Raises:
        StaleOrInvalidBatch: If the payload is malformed
    """
    if len(data) < _COUNT.size:
        raise StaleOrInvalidBatch("descriptor too short")

    (count,) = _COUNT.unpack_from(data, 0)
    if count > max_batch:
        raise StaleOrInvalidBatch(f"batch of {count} exceeds limit {max_batch}")

    expected = _COUNT.size + count * _INDEX.size
    if len(data) != expected:
        raise StaleOrInvalidBatch(f"descriptor length {len(data)} != {expected}")

    indices = [
        _INDEX.unpack_from(data, _COUNT.size + n * _INDEX.size)[0]
        for n in range(count)
    ]
    for prev, cur in zip(indices, indices[1:]):
        if cur <= prev:
            raise StaleOrInvalidBatch("indices must be strictly ascending", index=cur)
    return indices


def is_due(schedule: VestingSchedule, now: int, period_length: int) -> bool:
    """A schedule is due once a full period has passed since its last accrual."""
    return (
        now - schedule.last_accrual_time > period_length
        and schedule.released_amount < schedule.total_amount
    )


@dataclass
class Accrual:
    """One credited period."""
    index: int
    beneficiary: str
    amount: int
    released_amount: int


@dataclass
class UpkeepResult:
    """Outcome of an applied batch."""
    accruals: List[Accrual] = field(default_factory=list)
    cursor: int = 0

    @property
    def total_released(self) -> int:
        return sum(a.amount for a in self.accruals)


class UpkeepScanner:
    """Read-only selection of schedules due for accrual."""

    def __init__(self, store: ScheduleStore, period_length: int, batch_size: int):
        self.store = store
        self.period_length = period_length
        self.batch_size = batch_size

    def scan(self, cursor: int, now: int) -> List[int]:
        """Indices due for accrual from ``cursor`` to the end of the store, at most ``batch_size``."""
        due: List[int] = []
        for index in range(cursor, len(self.store)):
            if is_due(self.store[index], now, self.period_length):
                due.append(index)
                if len(due) == self.batch_size:
                    break
        return due

    def has_due_before(self, cursor: int, now: int) -> bool:
        """Whether any schedule ahead of the cursor (in wrap order) is due."""
        return any(
            is_due(self.store[index], now, self.period_length)
            for index in range(0, min(cursor, len(self.store)))
        )


class UpkeepApplier:
    """Validates and applies a batch selected by the scanner."""

    def __init__(self, store: ScheduleStore, period_length: int, batch_size: int):
        self.store = store
        self.period_length = period_length
        self.batch_size = batch_size

    def apply(self, indices: Sequence[int], now: int) -> UpkeepResult:
        """
        Credit one period to every index in the batch.

        Nothing is mutated unless the whole batch passes validation.

        Args:
            indices: Ascending schedule indices, normally from a previous scan
            now: Current timestamp

        Returns:
            UpkeepResult with the applied accruals and the next cursor

        Raises:
            StaleOrInvalidBatch: If the batch is empty, oversized, out of
                order, or any index is no longer due
        """
        if not indices:
            raise StaleOrInvalidBatch("empty batch")
        if len(indices) > self.batch_size:
            raise StaleOrInvalidBatch(
                f"batch of {len(indices)} exceeds limit {self.batch_size}"
            )

        planned = []
        previous = -1
        for index in indices:
            if index <= previous:
                raise StaleOrInvalidBatch("indices must be strictly ascending", index=index)
            previous = index
            if index >= len(self.store):
                raise StaleOrInvalidBatch("index out of range", index=index)
            schedule = self.store[index]
            if not is_due(schedule, now, self.period_length):
                raise StaleOrInvalidBatch("schedule is not due", index=index)
            amount = release_amount(
                schedule.amount_per_period,
                schedule.total_amount,
                schedule.released_amount,
            )
            planned.append((index, schedule, amount, checked_add(schedule.released_amount, amount)))

        result = UpkeepResult()
        for index, schedule, amount, released in planned:
            schedule.released_amount = released
            schedule.last_accrual_time = now
            result.accruals.append(
                Accrual(
                    index=index,
                    beneficiary=schedule.beneficiary,
                    amount=amount,
                    released_amount=released,
                )
            )

            logger.debug(
                "Applied vesting accrual",
                index=index,
                beneficiary=schedule.beneficiary,
                amount=amount,
                released_amount=released,
            )

        result.cursor = (indices[-1] + 1) % len(self.store)
        return result
