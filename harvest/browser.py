"""
Playwright page provider for the harvesting CLI.

Usage:
  from harvest.browser import open_page
  with open_page(url, headless=False) as (page, warnings):
      session = HarvestSession.for_page(page)

两种模式：
  - 本地模式（默认）：launch Chromium，新建 context/page 并导航。
  - CDP 模式：cdp_url（或环境变量 HARVEST_CDP_URL）指向一只已登录的 Chrome
    （--remote-debugging-port），复用其第一个 context/page；结束时只断开，不关闭浏览器。
"""

from __future__ import annotations

import json as _json
import os
import urllib.request as _urllib_request
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from .constants import DEFAULT_VIEWPORT
from .context_utils import make_context_args
from .errors import HarvestError
from .utils import parse_viewport


def _resolve_cdp_ws_url(endpoint: str) -> str:
    """给定一个 CDP 端点，尽力解析出可用的 webSocketDebuggerUrl。

    支持两种形式：
      - http://host:9222      → 通过 /json/version 解析 webSocketDebuggerUrl
      - ws://host:9222/...    → 直接返回
    """
    ep = (endpoint or "").strip()
    if ep.startswith("ws://") or ep.startswith("wss://"):
        return ep
    if not ep.startswith("http://") and not ep.startswith("https://"):
        return f"ws://{ep}"
    try:
        with _urllib_request.urlopen(ep.rstrip("/") + "/json/version", timeout=3.0) as resp:
            data = resp.read().decode("utf-8", errors="ignore")
        meta = _json.loads(data) if data else {}
        ws = meta.get("webSocketDebuggerUrl") or ""
        if isinstance(ws, str) and ws.strip():
            return ws.strip()
    except (OSError, ValueError):
        pass
    return ep


def _goto(page, url: str, timeout_ms: int, wait_until: str) -> None:
    wu = wait_until if wait_until in ("domcontentloaded", "load", "networkidle", "commit") else "domcontentloaded"
    try:
        page.goto(url, timeout=timeout_ms, wait_until=wu)
    except PlaywrightTimeoutError as e:
        raise HarvestError("NAV_TIMEOUT", "navigate", str(e), original=e) from None
    except PlaywrightError as e:
        raise HarvestError("NAV_ERROR", "navigate", str(e), original=e) from None


@contextmanager
def open_page(
    url: Optional[str] = None,
    *,
    headless: bool = False,
    timeout_ms: int = 45000,
    wait_until: str = "domcontentloaded",
    cdp_url: Optional[str] = None,
    device: Optional[str] = None,
    viewport: Any = None,
    storage_state: Optional[str] = None,
    reuse_current_page: bool = False,
) -> Iterator[Tuple[Any, List[Dict[str, Any]]]]:
    """打开（或接管）一个页面，yield (page, warnings)。

    CDP 模式下 reuse_current_page=True 时不导航，直接在用户当前打开的会话页上采集。
    """
    warnings: List[Dict[str, Any]] = []
    cdp = cdp_url or os.getenv("HARVEST_CDP_URL")
    with sync_playwright() as pw:
        browser = None
        context = None
        page = None
        owns_context = True
        try:
            if cdp:
                browser = pw.chromium.connect_over_cdp(_resolve_cdp_ws_url(cdp))
                if browser.contexts:
                    context = browser.contexts[0]
                    owns_context = False
                else:
                    context = browser.new_context()
                if reuse_current_page and context.pages:
                    page = context.pages[-1]
                else:
                    page = context.new_page()
            else:
                context_args = make_context_args(
                    pw,
                    device,
                    parse_viewport(viewport),
                    DEFAULT_VIEWPORT,
                    warnings,
                    storage_state=storage_state,
                )
                browser = pw.chromium.launch(headless=headless)
                context = browser.new_context(**context_args)
                page = context.new_page()
            page.set_default_timeout(int(timeout_ms))
        except PlaywrightError as e:
            raise HarvestError("LAUNCH_ERROR", "launch", str(e), original=e) from None

        try:
            if url and not (cdp and reuse_current_page):
                _goto(page, url, timeout_ms, wait_until)
            yield page, warnings
        finally:
            # CDP 模式保持远程 Chrome 打开，只关闭本次新建的 page/context
            if not (cdp and reuse_current_page):
                try:
                    page.close()
                except PlaywrightError:
                    pass
            if owns_context:
                try:
                    context.close()
                except PlaywrightError:
                    pass
            if not cdp:
                try:
                    browser.close()
                except PlaywrightError:
                    pass
