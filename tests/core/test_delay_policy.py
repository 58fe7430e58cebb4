# tests/core/test_delay_policy.py
import pytest
from unittest.mock import AsyncMock

from chatflow.core.config import Settings
from chatflow.core.delay_policy import DelayPolicy, NoDelayPolicy


@pytest.mark.unit
class TestBounded:

    def test_scales_and_caps(self):
        policy = DelayPolicy(max_wait_seconds=2.0, scale=0.1)

        assert policy.bounded(5) == 0.5
        assert policy.bounded(7200) == 2.0

    def test_non_positive_is_zero(self):
        policy = DelayPolicy()

        assert policy.bounded(0) == 0.0
        assert policy.bounded(-3) == 0.0

    def test_negative_configuration_rejected(self):
        with pytest.raises(ValueError):
            DelayPolicy(max_wait_seconds=-1)
        with pytest.raises(ValueError):
            DelayPolicy(scale=-0.5)

    def test_from_settings(self):
        policy = DelayPolicy.from_settings(Settings(MAX_WAIT_SECONDS=1.5, DELAY_SCALE=0.2))

        assert policy.max_wait_seconds == 1.5
        assert policy.scale == 0.2


@pytest.mark.asyncio
class TestWait:

    async def test_wait_uses_injected_sleep(self):
        sleep = AsyncMock()
        policy = DelayPolicy(max_wait_seconds=2.0, scale=0.1, sleep=sleep)

        waited = await policy.wait(60)

        assert waited == 2.0
        sleep.assert_awaited_once_with(2.0)

    async def test_zero_wait_does_not_sleep(self):
        sleep = AsyncMock()
        policy = DelayPolicy(sleep=sleep)

        assert await policy.wait(0) == 0.0
        sleep.assert_not_awaited()

    async def test_no_delay_policy(self):
        assert await NoDelayPolicy().wait(3600) == 0.0
