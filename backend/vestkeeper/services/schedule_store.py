"""Append-only store of vesting schedules."""
from dataclasses import dataclass, asdict
from typing import Dict, Iterator, List, Optional

from vestkeeper.services.accrual import checked_add, checked_sub


@dataclass
class VestingSchedule:
    """State of one beneficiary's vesting schedule."""
    beneficiary: str
    start_time: int
    cliff_time: int
    end_time: int
    total_amount: int
    amount_per_period: int
    released_amount: int = 0
    withdrawn_amount: int = 0
    last_accrual_time: int = 0

    @property
    def is_exhausted(self) -> bool:
        return self.released_amount == self.total_amount

    @property
    def available_amount(self) -> int:
        """Accrued but not yet withdrawn."""
        return checked_sub(self.released_amount, self.withdrawn_amount)

    @property
    def locked_amount(self) -> int:
        """Units still held in custody for this schedule."""
        return checked_sub(self.total_amount, self.withdrawn_amount)

    def to_dict(self) -> dict:
        return asdict(self)


class ScheduleStore:
    """
    Indexed collection of schedules in creation order.

    Entries are never removed: the upkeep cursor and the beneficiary lookup
    both refer to positions in this list.
    """

    def __init__(self):
        self._schedules: List[VestingSchedule] = []
        self._index_by_beneficiary: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._schedules)

    def __iter__(self) -> Iterator[VestingSchedule]:
        return iter(self._schedules)

    def __getitem__(self, index: int) -> VestingSchedule:
        if index < 0:
            raise IndexError(index)
        return self._schedules[index]

    def append(self, schedule: VestingSchedule) -> int:
        """Add a schedule and point the beneficiary's lookup at it."""
        self._schedules.append(schedule)
        index = len(self._schedules) - 1
        self._index_by_beneficiary[schedule.beneficiary] = index
        return index

    def index_of(self, beneficiary: str) -> Optional[int]:
        return self._index_by_beneficiary.get(beneficiary)

    def get_by_beneficiary(self, beneficiary: str) -> Optional[VestingSchedule]:
        index = self.index_of(beneficiary)
        if index is None:
            return None
        return self._schedules[index]

    def total_committed(self) -> int:
        total = 0
        for schedule in self._schedules:
            total = checked_add(total, schedule.total_amount)
        return total

    def total_withdrawn(self) -> int:
        total = 0
        for schedule in self._schedules:
            total = checked_add(total, schedule.withdrawn_amount)
        return total
