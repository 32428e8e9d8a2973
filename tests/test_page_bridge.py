import pytest
from playwright.sync_api import Error as PlaywrightError

from harvest.config import SelectorConfig
from harvest.errors import DOCUMENT_UNAVAILABLE, HarvestError
from harvest.page_bridge import PageBridge, is_document_gone
from harvest.quiescence import QuiescenceWaiter

from fakes import StubPage


@pytest.mark.parametrize(
    "message",
    [
        "Target page, context or browser has been closed",
        "Execution context was destroyed, most likely because of a navigation",
        "Frame was detached",
        "Protocol error (Runtime.callFunctionOn): Target closed.",
    ],
)
def test_document_gone_errors_are_translated(message):
    bridge = PageBridge(StubPage(error=PlaywrightError(message)))
    with pytest.raises(HarvestError) as info:
        bridge.boundary_present(SelectorConfig())
    assert info.value.code == DOCUMENT_UNAVAILABLE
    assert info.value.document_gone
    assert info.value.stage == "boundary"


def test_other_page_errors_propagate_unchanged():
    bridge = PageBridge(StubPage(error=PlaywrightError("SyntaxError: Unexpected token")))
    with pytest.raises(PlaywrightError):
        bridge.collect_items(object(), SelectorConfig())


def test_closed_page_short_circuits():
    page = StubPage(closed=True)
    bridge = PageBridge(page)
    with pytest.raises(HarvestError) as info:
        bridge.pause(100)
    assert info.value.code == DOCUMENT_UNAVAILABLE
    assert page.calls == []


def test_collect_items_default_when_script_returns_nothing():
    data = PageBridge(StubPage(result=None)).collect_items(object(), SelectorConfig())
    assert data["items"] == []


def test_is_document_gone():
    assert is_document_gone(Exception("Browser has been closed"))
    assert not is_document_gone(Exception("Element is not visible"))


class _BrokenQuiet:
    def __init__(self):
        self.paused = []

    def wait_quiet(self, stability_ms, max_wait_ms):
        raise RuntimeError("MutationObserver unavailable")

    def pause(self, ms):
        self.paused.append(ms)


def test_quiescence_falls_back_to_fixed_delay():
    bridge = _BrokenQuiet()
    warnings = []
    waiter = QuiescenceWaiter(bridge, warn=lambda code, stage, **kw: warnings.append(code))
    info = waiter.wait(300, 1000)
    assert bridge.paused == [300]
    assert info["fallback"] is True
    assert warnings == ["QUIESCENCE_FALLBACK"]


def test_quiescence_propagates_document_loss():
    waiter = QuiescenceWaiter(PageBridge(StubPage(error=PlaywrightError("Target closed"))))
    with pytest.raises(HarvestError):
        waiter.wait(100, 200)


def test_quiescence_clamps_max_wait():
    class Recorder:
        args = None

        def wait_quiet(self, stability_ms, max_wait_ms):
            Recorder.args = (stability_ms, max_wait_ms)
            return {"stable": True}

    QuiescenceWaiter(Recorder()).wait(500, 100)
    assert Recorder.args == (500, 500)
