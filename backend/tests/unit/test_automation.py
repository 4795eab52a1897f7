"""Unit tests for the keeper-facing upkeep interface"""
import pytest

from conftest import ALICE, BOB
from vestkeeper.services.automation import Automatable, UpkeepAutomation
from vestkeeper.services.engine import DAY
from vestkeeper.services.errors import StaleOrInvalidBatch
from vestkeeper.services.upkeep import decode_work_descriptor, encode_work_descriptor


class TestUpkeepAutomation:
    """Tests for check_upkeep / perform_upkeep over byte payloads"""

    def test_satisfies_protocol(self, engine):
        assert isinstance(UpkeepAutomation(engine), Automatable)

    def test_no_schedules(self, engine):
        work_pending, descriptor = UpkeepAutomation(engine).check_upkeep(b"")
        assert work_pending is False
        assert decode_work_descriptor(descriptor, 10) == []

    @pytest.mark.asyncio
    async def test_check_then_perform(self, engine, create, clock):
        automation = UpkeepAutomation(engine)
        await create(beneficiary=ALICE)
        await create(beneficiary=BOB)

        clock.advance(DAY)
        assert automation.check_upkeep()[0] is False

        clock.advance(DAY)
        work_pending, descriptor = automation.check_upkeep(b"ignored")
        assert work_pending is True
        assert descriptor == encode_work_descriptor([0, 1])

        result = await automation.perform_upkeep(descriptor)
        assert result.total_released == 20
        assert engine.cursor == 0
        assert automation.check_upkeep()[0] is False

    @pytest.mark.asyncio
    async def test_replayed_descriptor_rejected(self, engine, create, clock):
        automation = UpkeepAutomation(engine)
        await create()
        clock.advance(2 * DAY)
        _, descriptor = automation.check_upkeep()

        await automation.perform_upkeep(descriptor)
        clock.advance(60)
        with pytest.raises(StaleOrInvalidBatch):
            await automation.perform_upkeep(descriptor)
        assert engine.get_schedule(ALICE).released_amount == 10

    @pytest.mark.asyncio
    async def test_malformed_descriptor_rejected(self, engine, create, clock):
        automation = UpkeepAutomation(engine)
        await create()
        clock.advance(2 * DAY)
        with pytest.raises(StaleOrInvalidBatch):
            await automation.perform_upkeep(b"\x00\x00\x00\x01\x00")
        assert engine.get_schedule(ALICE).released_amount == 0

    @pytest.mark.asyncio
    async def test_forged_index_rejected(self, engine, create, clock):
        automation = UpkeepAutomation(engine)
        await create()
        clock.advance(2 * DAY)
        with pytest.raises(StaleOrInvalidBatch):
            await automation.perform_upkeep(encode_work_descriptor([0, 7]))
        assert engine.get_schedule(ALICE).released_amount == 0
