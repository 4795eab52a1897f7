"""Accrual arithmetic for vesting schedules.

Amounts are whole units. Every operation is checked against ``MAX_AMOUNT``,
the largest value the journal's BigInteger columns can hold.
"""
from vestkeeper.services.errors import ArithmeticOverflow

MAX_AMOUNT = 2**63 - 1


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > MAX_AMOUNT or result < 0:
        raise ArithmeticOverflow("add", a, b)
    return result


def checked_sub(a: int, b: int) -> int:
    result = a - b
    if result < 0 or result > MAX_AMOUNT:
        raise ArithmeticOverflow("sub", a, b)
    return result


def period_count(start_time: int, end_time: int, period_length: int) -> int:
    """Number of whole periods between start and end."""
    return checked_sub(end_time, start_time) // period_length


def amount_per_period(total_amount: int, start_time: int, end_time: int, period_length: int) -> int:
    """
    Fixed amount released per accrual, computed once at creation.

    Uses floor division; the final accrual is capped by ``release_amount`` so
    the remainder is absorbed at the end of the schedule.
    """
    periods = period_count(start_time, end_time, period_length)
    if periods == 0:
        raise ArithmeticOverflow("div", total_amount, periods)
    return total_amount // periods


def release_amount(amount_per_period: int, total_amount: int, released_amount: int) -> int:
    """Amount to credit for one accrual, capped at the remaining balance."""
    remaining = checked_sub(total_amount, released_amount)
    return min(amount_per_period, remaining)
