import pytest

from harvest.config import AcquireConfig
from harvest.session import HarvestSession

from fakes import FakeBridge, FakeChat


@pytest.fixture
def fast_config() -> AcquireConfig:
    return AcquireConfig(
        stability_window_ms=50,
        min_stability_ms=10,
        max_wait_ms=100,
        settle_ms=10,
        top_settle_ms=10,
        no_growth_limit=4,
        max_iterations=200,
    )


@pytest.fixture
def make_session():
    def _make(chat=None, **bridge_kwargs):
        bridge = FakeBridge(chat or FakeChat(), **bridge_kwargs)
        return HarvestSession(bridge)

    return _make
