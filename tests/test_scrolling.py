from harvest.config import SelectorConfig
from harvest.scrolling import ScrollDriver

from fakes import FakeBridge, FakeChat, FakeHandle


class _ChainBridge(FakeBridge):
    def __init__(self, hits, root=False, broken=()):
        super().__init__()
        self.hits = set(hits)
        self.root = root
        self.broken = set(broken)
        self.tried = []

    def find_scroller(self, selector):
        self.tried.append(selector)
        if selector in self.broken:
            raise RuntimeError("invalid selector")
        return FakeHandle(selector) if selector in self.hits else None

    def root_scroller(self):
        self.tried.append(":root")
        return FakeHandle(":root") if self.root else None


def _driver(bridge, selectors=("#a", "#b", "#c"), warn=None):
    return ScrollDriver(bridge, SelectorConfig(scroller_selectors=list(selectors)), warn=warn)


def test_first_matching_strategy_wins():
    bridge = _ChainBridge(hits={"#b", "#c"})
    handle = _driver(bridge).find_scroller()
    assert handle.name == "#b"
    assert bridge.tried == ["#a", "#b"]


def test_falls_back_to_root_scroller():
    bridge = _ChainBridge(hits=set(), root=True)
    assert _driver(bridge).find_scroller().name == ":root"


def test_strategy_errors_are_skipped():
    warnings = []
    bridge = _ChainBridge(hits={"#c"}, broken={"#a"})
    driver = _driver(bridge, warn=lambda code, stage, **kw: warnings.append(code))
    assert driver.find_scroller().name == "#c"
    assert warnings == ["SCROLLER_STRATEGY_ERROR"]


def test_nothing_scrollable_returns_none():
    driver = _driver(_ChainBridge(hits=set()))
    assert driver.find_scroller() is None
    assert driver.scroller is None


def test_step_and_bump_sizes_follow_viewport():
    bridge = FakeBridge(FakeChat(total=100, initial=100))
    driver = ScrollDriver(bridge, SelectorConfig())
    driver.find_scroller()
    driver.scroll_to_bottom()
    start = bridge.chat.top
    driver.scroll_step()
    assert start - bridge.chat.top == 150
    driver.bump()
    assert start - bridge.chat.top == 150 + 250
    driver.bump(40)
    assert start - bridge.chat.top == 150 + 250 + 40


def test_at_top_uses_scroll_offset():
    bridge = FakeBridge(FakeChat(total=30, initial=30))
    driver = ScrollDriver(bridge, SelectorConfig())
    driver.find_scroller()
    assert driver.at_top()
    driver.scroll_to_bottom()
    assert not driver.at_top()
    driver.scroll_to_top()
    assert driver.at_top()


def test_scroll_without_scroller_is_noop():
    driver = ScrollDriver(FakeBridge(), SelectorConfig())
    assert not driver.scroll_to_top()
    assert not driver.scroll_to_item(object(), 1)
