"""
Playwright-backed bridge used by the harvesting engine.

All page access of the engine goes through PageBridge so the loop itself
never touches Playwright directly:
  - create_registry() -> JSHandle
  - find_scroller(selector) / root_scroller() -> ElementHandle | None
  - scroll_metrics(scroller) -> {top, height, client, connected}
  - scroll(scroller, mode, amount=0) -> bool
  - scroll_to_ref(scroller, registry, ref, offset) -> bool
  - collect_items(registry, selectors) -> {items, baseUrl, container}
  - boundary_present(selectors) -> bool
  - capture_header(selectors) -> {html, media, strategy, baseUrl} | None
  - wait_quiet(stability_ms, max_wait_ms) -> {stable, waitedMs, mutations}
  - locate_container(selectors) -> ElementHandle | None
  - replace_children(container, htmls, *, scroller=None, spacer_px=50) -> int
  - pause(ms) / on_console(handler) / off_console(handler)

页面已关闭、导航走或 frame 被分离时，Playwright 错误统一翻译为
HarvestError(DOCUMENT_UNAVAILABLE)；其余 Playwright 错误原样抛出，由调用方
按“瞬时错误”处理。
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError

from . import scripts as JS
from .config import SelectorConfig
from .errors import DOCUMENT_UNAVAILABLE, HarvestError

# Playwright 报错文本中表示“文档已不可用”的片段
_GONE_MARKERS = (
    "target closed",
    "has been closed",
    "execution context was destroyed",
    "frame was detached",
    "frame has been detached",
    "cannot find context with specified id",
    "navigating frame was detached",
)


def is_document_gone(error: BaseException) -> bool:
    msg = str(error).lower()
    return any(m in msg for m in _GONE_MARKERS)


class PageBridge:
    def __init__(self, page) -> None:
        self._page = page

    @property
    def page(self):
        return self._page

    def _call(self, stage: str, fn: Callable[..., Any], *args: Any) -> Any:
        if self.is_closed():
            raise HarvestError(DOCUMENT_UNAVAILABLE, stage, "page is closed")
        try:
            return fn(*args)
        except PlaywrightError as e:
            if is_document_gone(e):
                raise HarvestError(DOCUMENT_UNAVAILABLE, stage, str(e), original=e) from None
            raise

    # Query
    def is_closed(self) -> bool:
        try:
            return bool(self._page.is_closed())
        except Exception:
            return False

    def url(self) -> str:
        try:
            return self._page.url or ""
        except Exception:
            return ""

    def title(self) -> str:
        try:
            return self._page.title() or ""
        except Exception:
            return ""

    def create_registry(self):
        return self._call("registry", self._page.evaluate_handle, JS.CREATE_REGISTRY)

    def _element_or_none(self, stage: str, script: str, arg: Any = None):
        handle = self._call(stage, self._page.evaluate_handle, script, arg)
        element = handle.as_element()
        if element is None:
            handle.dispose()
        return element

    def find_scroller(self, selector: str):
        return self._element_or_none("locate_scroller", JS.FIND_SCROLLER, selector)

    def root_scroller(self):
        return self._element_or_none("locate_scroller", JS.ROOT_SCROLLER)

    def scroll_metrics(self, scroller) -> Dict[str, Any]:
        return self._call("metrics", scroller.evaluate, JS.SCROLL_METRICS)

    # Scrolling
    def scroll(self, scroller, mode: str, amount: int = 0) -> bool:
        op = {"mode": mode, "amount": int(amount)}
        return bool(self._call("scroll", scroller.evaluate, JS.SCROLL, op))

    def scroll_to_ref(self, scroller, registry, ref: int, offset: int = 100) -> bool:
        arg = {"registry": registry, "ref": int(ref), "offset": int(offset)}
        return bool(self._call("scroll", scroller.evaluate, JS.SCROLL_TO_REF, arg))

    # Snapshot
    def collect_items(self, registry, selectors: SelectorConfig) -> Dict[str, Any]:
        arg = dict(selectors.to_js(), registry=registry)
        data = self._call("harvest", self._page.evaluate, JS.COLLECT_ITEMS, arg)
        return data or {"items": [], "baseUrl": self.url(), "container": False}

    def boundary_present(self, selectors: SelectorConfig) -> bool:
        return bool(self._call("boundary", self._page.evaluate, JS.BOUNDARY_PRESENT, selectors.to_js()))

    def capture_header(self, selectors: SelectorConfig) -> Optional[Dict[str, Any]]:
        return self._call("header", self._page.evaluate, JS.CAPTURE_HEADER, selectors.to_js())

    def wait_quiet(self, stability_ms: int, max_wait_ms: int) -> Dict[str, Any]:
        arg = {"stabilityMs": int(stability_ms), "maxWaitMs": int(max_wait_ms)}
        return self._call("quiescence", self._page.evaluate, JS.WAIT_QUIET, arg) or {}

    # Merge
    def locate_container(self, selectors: SelectorConfig):
        return self._element_or_none("merge", JS.LOCATE_CONTAINER, selectors.to_js())

    def replace_children(self, container, htmls: List[str], *, scroller=None, spacer_px: int = 50) -> int:
        arg = {"htmls": list(htmls), "scroller": scroller, "spacerPx": int(spacer_px)}
        return int(self._call("merge", container.evaluate, JS.REPLACE_CHILDREN, arg) or 0)

    # Timing and events
    def pause(self, ms: int) -> None:
        if ms and ms > 0:
            self._call("wait", self._page.wait_for_timeout, int(ms))

    def on_console(self, handler: Callable[[Any], None]) -> None:
        self._page.on("console", handler)

    def off_console(self, handler: Callable[[Any], None]) -> None:
        try:
            self._page.remove_listener("console", handler)
        except Exception:
            pass

    def content(self) -> str:
        return self._call("export", self._page.content)
