"""Trigger-facing upkeep interface.

An external keeper polls ``check_upkeep`` and, when work is pending, hands
the returned descriptor back to ``perform_upkeep``. The descriptor is treated
as untrusted input on the way back in.
"""
from typing import Protocol, Tuple, runtime_checkable

from vestkeeper.services.engine import VestingEngine
from vestkeeper.services.upkeep import (
    UpkeepResult,
    decode_work_descriptor,
    encode_work_descriptor,
)


@runtime_checkable
class Automatable(Protocol):
    """Two-step upkeep contract consumed by a periodic trigger source."""

    def check_upkeep(self, check_data: bytes = b"") -> Tuple[bool, bytes]:
        ...

    async def perform_upkeep(self, perform_data: bytes) -> UpkeepResult:
        ...


class UpkeepAutomation:
    """Exposes a vesting engine's scan/apply pair over opaque byte payloads."""

    def __init__(self, engine: VestingEngine):
        self.engine = engine

    def check_upkeep(self, check_data: bytes = b"") -> Tuple[bool, bytes]:
        # check_data is accepted for interface compatibility and ignored
        indices = self.engine.scan()
        if indices:
            return True, encode_work_descriptor(indices)
        return self.engine.needs_rewind(), encode_work_descriptor([])

    async def perform_upkeep(self, perform_data: bytes) -> UpkeepResult:
        indices = decode_work_descriptor(perform_data, self.engine.config.batch_size)
        return await self.engine.apply(indices)
