"""Typed errors raised by the vesting engine.

Every error carries a machine-readable ``code`` so the API layer and callers
can branch on type instead of message text.
"""
from typing import Any, Dict, Optional


class VestingError(Exception):
    """Base class for all engine errors."""

    code: str = "VESTING_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "detail": self.message, **self.details}


class Unauthorized(VestingError):
    code = "UNAUTHORIZED"

    def __init__(self, caller: str):
        super().__init__(f"Caller {caller} is not the administrator", caller=caller)
        self.caller = caller


class InvalidAmount(VestingError):
    code = "INVALID_AMOUNT"

    def __init__(self, amount: int):
        super().__init__(f"Amount must be positive, got {amount}", amount=amount)
        self.amount = amount


class InvalidPeriod(VestingError):
    code = "INVALID_PERIOD"

    def __init__(self, reason: str, start: int, cliff: int, end: int):
        super().__init__(
            f"Invalid vesting period: {reason}",
            start=start,
            cliff=cliff,
            end=end,
        )
        self.reason = reason


class BeneficiaryAlreadyScheduled(VestingError):
    code = "BENEFICIARY_ALREADY_SCHEDULED"

    def __init__(self, beneficiary: str, index: int):
        super().__init__(
            f"Beneficiary {beneficiary} still holds funds in schedule {index}",
            beneficiary=beneficiary,
            index=index,
        )
        self.beneficiary = beneficiary
        self.index = index


class StaleOrInvalidBatch(VestingError):
    code = "STALE_OR_INVALID_BATCH"

    def __init__(self, reason: str, index: Optional[int] = None):
        super().__init__(f"Upkeep batch rejected: {reason}", index=index)
        self.reason = reason
        self.index = index


class BeneficiaryNotFound(VestingError):
    code = "BENEFICIARY_NOT_FOUND"

    def __init__(self, beneficiary: str):
        super().__init__(f"No vesting schedule for {beneficiary}", beneficiary=beneficiary)
        self.beneficiary = beneficiary


class CliffNotReached(VestingError):
    code = "CLIFF_NOT_REACHED"

    def __init__(self, beneficiary: str, cliff_time: int, now: int):
        super().__init__(
            f"Cliff for {beneficiary} is at {cliff_time}, current time is {now}",
            beneficiary=beneficiary,
            cliff_time=cliff_time,
            now=now,
        )
        self.cliff_time = cliff_time


class InsufficientAvailableBalance(VestingError):
    code = "INSUFFICIENT_AVAILABLE_BALANCE"

    def __init__(self, beneficiary: str, requested: int, available: int):
        super().__init__(
            f"Requested {requested} but only {available} is available",
            beneficiary=beneficiary,
            requested=requested,
            available=available,
        )
        self.requested = requested
        self.available = available


class AssetTransferFailed(VestingError):
    """Wraps a failure reported by the asset ledger collaborator."""

    code = "ASSET_TRANSFER_FAILED"

    def __init__(self, direction: str, address: str, amount: int, cause: Exception):
        super().__init__(
            f"Asset transfer {direction} for {address} failed: {cause}",
            direction=direction,
            address=address,
            amount=amount,
        )
        self.cause = cause


class ArithmeticOverflow(VestingError):
    code = "ARITHMETIC_OVERFLOW"

    def __init__(self, operation: str, a: int, b: int):
        super().__init__(f"Overflow in {operation}({a}, {b})", operation=operation)
