"""
harvest.scrolling
滚动容器定位与滚动操作。

find_scroller 依次尝试 selectors.scroller_selectors（命中元素或其最近的可滚动
祖先），最后回退到 document.scrollingElement。所有滚动操作都会写 scrollTop
并派发合成的 wheel/scroll 事件。单次操作失败只记录 warning 并返回 False。
"""

from __future__ import annotations

from functools import partial
from typing import Any, Callable, Dict, List, Optional

from .config import SelectorConfig
from .errors import HarvestError


def _step_up(client_height: int) -> int:
    return -int(min(200, max(100, client_height * 0.3)))


def _bump_up(client_height: int) -> int:
    return -int(min(300, max(150, client_height * 0.5)))


class ScrollDriver:
    def __init__(
        self,
        bridge,
        selectors: SelectorConfig,
        *,
        ref_offset_px: int = 100,
        warn: Optional[Callable[..., None]] = None,
    ) -> None:
        self._bridge = bridge
        self._selectors = selectors
        self._ref_offset_px = ref_offset_px
        self._warn = warn
        self.scroller = None

    def _report(self, code: str, stage: str, error: Exception) -> None:
        if self._warn:
            self._warn(code, stage, error=str(error))

    def strategies(self) -> List[Callable[[], Any]]:
        chain: List[Callable[[], Any]] = [partial(self._bridge.find_scroller, sel) for sel in self._selectors.scroller_selectors]
        chain.append(self._bridge.root_scroller)
        return chain

    def find_scroller(self):
        for strategy in self.strategies():
            try:
                handle = strategy()
            except HarvestError:
                raise
            except Exception as e:
                self._report("SCROLLER_STRATEGY_ERROR", "locate_scroller", e)
                continue
            if handle is not None:
                self.scroller = handle
                return handle
        self.scroller = None
        return None

    def metrics(self) -> Dict[str, Any]:
        if self.scroller is None:
            return {"top": 0, "height": 0, "client": 0, "connected": False}
        try:
            return self._bridge.scroll_metrics(self.scroller)
        except HarvestError:
            raise
        except Exception as e:
            self._report("METRICS_ERROR", "metrics", e)
            return {"top": 0, "height": 0, "client": 0, "connected": False}

    def ensure_scroller(self) -> bool:
        """滚动容器被渲染端替换（脱离文档）时重新定位。"""
        if self.scroller is not None and self.metrics().get("connected"):
            return True
        return self.find_scroller() is not None

    def at_top(self) -> bool:
        m = self.metrics()
        return bool(m.get("connected")) and float(m.get("top") or 0) <= 1

    def boundary_present(self) -> bool:
        try:
            return self._bridge.boundary_present(self._selectors)
        except HarvestError:
            raise
        except Exception as e:
            self._report("BOUNDARY_CHECK_ERROR", "boundary", e)
            return False

    def _scroll(self, mode: str, amount: int = 0) -> bool:
        if self.scroller is None:
            return False
        try:
            return self._bridge.scroll(self.scroller, mode, amount)
        except HarvestError:
            raise
        except Exception as e:
            self._report("SCROLL_ERROR", "scroll", e)
            return False

    def scroll_to_top(self) -> bool:
        return self._scroll("top")

    def scroll_to_bottom(self) -> bool:
        return self._scroll("bottom")

    def scroll_step(self, amount: Optional[int] = None) -> bool:
        if amount is None:
            amount = _step_up(int(self.metrics().get("client") or 0))
        return self._scroll("by", amount)

    def bump(self, amount: int = 0) -> bool:
        delta = -abs(int(amount)) if amount else _bump_up(int(self.metrics().get("client") or 0))
        return self._scroll("by", delta)

    def scroll_to_item(self, registry, ref: int) -> bool:
        if self.scroller is None:
            return False
        try:
            return self._bridge.scroll_to_ref(self.scroller, registry, ref, self._ref_offset_px)
        except HarvestError:
            raise
        except Exception as e:
            self._report("SCROLL_TO_ITEM_ERROR", "scroll", e)
            return False
