"""
harvest.acquisition
滚动采集循环（状态机）。

    INIT -> PRIMING -> ITERATING <-> STUCK_RECOVERY
                           |  ^
                           v  |
                    AT_TOP_CONFIRMING -> DONE | FAILED

每轮迭代：判定是否到顶 -> 向上滚动（到顶则抓 header 并强制回顶；否则滚向
当前最靠上的已采集项，找不到时小步上滚）-> 等待页面安静 -> 收割可见项
-> 评估停止条件。

停止条件（先命中者生效）：
  max_items       缓存达到上限
  confirmed_top   到顶且确认窗口内无新项
  stuck_exhausted 多次纠偏滚动仍无新项且未见顶部边界（正常结束，返回已采集部分）
  boundary_after_stuck 纠偏耗尽但检测到顶部边界文本
  no_growth       非 stop_at_top 模式下连续无增长达到上限
  max_iterations  迭代次数安全上限

页面文档不可用（关闭/导航）时立即以 FAILED 结束，缓存保留在 session 上。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .batch_signal import BatchLoadSignal
from .config import AcquireConfig
from .errors import DOCUMENT_UNAVAILABLE, NO_SCROLLER, HarvestError
from .media import resolve_media
from .quiescence import QuiescenceWaiter
from .scrolling import ScrollDriver
from .session import HarvestSession, TopPointer


class LoopState(str, Enum):
    INIT = "init"
    PRIMING = "priming"
    ITERATING = "iterating"
    STUCK_RECOVERY = "stuck_recovery"
    AT_TOP_CONFIRMING = "at_top_confirming"
    DONE = "done"
    FAILED = "failed"


@dataclass
class HarvestResult:
    new_items: int = 0
    skipped: int = 0
    topmost: Optional[TopPointer] = None


@dataclass
class AcquireResult:
    ok: bool
    loaded_count: int
    error: Optional[str] = None
    state: str = LoopState.DONE.value
    stop_reason: Optional[str] = None
    iterations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"ok": self.ok, "loadedCount": self.loaded_count}
        if self.error:
            out["error"] = self.error
        out.update({"state": self.state, "stopReason": self.stop_reason, "iterations": self.iterations})
        return out


def harvest_visible(session: HarvestSession, limit: Optional[int] = None) -> HarvestResult:
    """收割当前挂载的消息项写入缓存；单个节点失败跳过。

    topmost 为本次可见的非占位项中 order 最小者。页面脚本本身报错时记 warning
    并返回空结果（计入无增长轮次）；文档不可用仍向上抛出。
    """
    result = HarvestResult()
    try:
        snap = session.bridge.collect_items(session.registry, session.selectors)
    except HarvestError:
        raise
    except Exception as e:
        session.warn("HARVEST_ERROR", "harvest", error=str(e))
        return result
    base_url = snap.get("baseUrl") or session.bridge.url()
    capture_ms = session.classifier.now()
    cache = session.cache
    for index, item in enumerate(snap.get("items") or []):
        try:
            html = item.get("html") or ""
            node = session.classifier.parse(html)
            if node is None:
                result.skipped += 1
                continue
            cls = session.classifier.classify(node, index, capture_ms)
            if cls.is_placeholder:
                result.skipped += 1
                continue
            pointer = TopPointer(ref=int(item["ref"]), key=cls.key, order=cls.order)
            if result.topmost is None or pointer.order < result.topmost.order:
                result.topmost = pointer
            if cache.has(cls.key) or (limit is not None and len(cache) >= limit):
                continue
            if cache.add(cls.key, cls.order, resolve_media(html, base_url, item.get("media"))) is not None:
                result.new_items += 1
        except Exception as e:
            result.skipped += 1
            session.warn("NODE_SKIPPED", "harvest", index=index, error=str(e))
    return result


def capture_header(session: HarvestSession) -> bool:
    """尝试抓取会话起点 header；已存在时不覆盖。"""
    if session.cache.header is not None:
        return False
    try:
        found = session.bridge.capture_header(session.selectors)
    except HarvestError:
        raise
    except Exception as e:
        session.warn("HEADER_CAPTURE_ERROR", "header", error=str(e))
        return False
    if not found or not found.get("html"):
        return False
    base_url = found.get("baseUrl") or session.bridge.url()
    stored = session.cache.set_header(resolve_media(found["html"], base_url, found.get("media")))
    if stored:
        session.log(f"header captured via {found.get('strategy') or 'unknown'}")
    return stored


class AcquisitionLoop:
    def __init__(
        self,
        session: HarvestSession,
        config: Optional[AcquireConfig] = None,
        on_progress: Optional[Callable[[Dict[str, Any]], None]] = None,
    ) -> None:
        self.session = session
        self.config = config or AcquireConfig()
        self.on_progress = on_progress
        self.driver = ScrollDriver(session.bridge, session.selectors, warn=session.warn)
        self.waiter = QuiescenceWaiter(session.bridge, warn=session.warn)
        self.batch = BatchLoadSignal(session.bridge, self.config.batch_markers)
        self.state = LoopState.INIT
        self.stop_reason: Optional[str] = None
        self.iterations = 0

    # Public
    def run(self) -> AcquireResult:
        s = self.session
        self.batch.attach()
        try:
            return self._run()
        except HarvestError as e:
            self.state = LoopState.FAILED
            self.stop_reason = e.code
            s.warn(e.code, e.stage, error=e.message)
            reason = "document unavailable" if e.code == DOCUMENT_UNAVAILABLE else e.code.lower()
            return self._result(False, f"{reason}: {e.message}")
        finally:
            self.batch.detach()

    def harvest(self) -> HarvestResult:
        res = harvest_visible(self.session, self.config.item_limit)
        if res.topmost is not None:
            self.session.topmost = res.topmost
        return res

    # States
    def _run(self) -> AcquireResult:
        s = self.session
        cfg = self.config
        self.driver.scroller = s.scroller
        if not self.driver.ensure_scroller():
            self.state = LoopState.FAILED
            self.stop_reason = NO_SCROLLER
            s.warn(NO_SCROLLER, "init")
            return self._result(False, "no scrollable container found")
        s.scroller = self.driver.scroller

        self.state = LoopState.PRIMING
        self.driver.scroll_to_bottom()
        self._settle()
        first = self.harvest()
        s.log(f"priming: {first.new_items} new, cache={len(s.cache)}")

        self.state = LoopState.ITERATING
        no_change = 0
        no_growth = 0
        while True:
            if self._limit_reached():
                return self._done("max_items")
            if self.iterations >= cfg.max_iterations:
                return self._done("max_iterations")
            self.iterations += 1
            self.batch.consume()
            if not self.driver.ensure_scroller():
                s.warn("SCROLLER_LOST", "iterate", iteration=self.iterations)
            s.scroller = self.driver.scroller

            before = len(s.cache)
            at_top = self._at_top()
            self._advance(at_top)
            self._settle()
            res = self.harvest()
            grew = len(s.cache) > before
            self._report(res, at_top)

            if self._limit_reached():
                return self._done("max_items")
            if cfg.stop_at_top:
                if at_top:
                    no_change = 0
                    if self._confirm_top():
                        return self._done("confirmed_top")
                    continue
                if grew:
                    no_change = 0
                    continue
                no_change += 1
                if no_change >= cfg.bump_after:
                    outcome = self._recover()
                    if outcome == "resumed":
                        no_change = 0
                        continue
                    if outcome == "boundary":
                        return self._done("boundary_after_stuck")
                    return self._done("stuck_exhausted")
            else:
                no_growth = 0 if grew else no_growth + 1
                if no_growth >= cfg.no_growth_limit:
                    return self._done("no_growth")

    def _at_top(self) -> bool:
        return self.driver.at_top() or self.driver.boundary_present()

    def _advance(self, at_top: bool) -> None:
        s = self.session
        if at_top:
            capture_header(s)
            self.driver.scroll_to_top()
            return
        if s.topmost is not None and self.driver.scroll_to_item(s.registry, s.topmost.ref):
            return
        self.driver.scroll_step()

    def _settle(self) -> None:
        cfg = self.config
        self.waiter.wait(cfg.effective_stability_ms, cfg.max_wait_ms)
        if self.batch.consume():
            self.session.log("batch load signalled, extra wait")
            self.session.bridge.pause(cfg.batch_extra_wait_ms)

    def _confirm_top(self) -> bool:
        """到顶后多轮复收，期间无新项则确认到顶。"""
        self.state = LoopState.AT_TOP_CONFIRMING
        cfg = self.config
        for _ in range(max(1, cfg.top_confirm_rounds)):
            capture_header(self.session)
            self.driver.scroll_to_top()
            self.session.bridge.pause(cfg.top_settle_ms)
            res = self.harvest()
            if res.new_items > 0 or self._limit_reached():
                self.state = LoopState.ITERATING
                return False
        return True

    def _recover(self) -> str:
        """返回 resumed / boundary / exhausted。"""
        self.state = LoopState.STUCK_RECOVERY
        s = self.session
        cfg = self.config
        s.log(f"stuck at cache={len(s.cache)}, bumping")
        for _ in range(max(0, cfg.stuck_bump_limit)):
            self.driver.bump(cfg.bump_px)
            s.bridge.pause(cfg.settle_ms)
            if self.harvest().new_items > 0:
                self.state = LoopState.ITERATING
                return "resumed"
        self.driver.scroll_to_top()
        s.bridge.pause(cfg.top_settle_ms)
        if self.harvest().new_items > 0:
            self.state = LoopState.ITERATING
            return "resumed"
        if self.driver.boundary_present():
            return "boundary"
        return "exhausted"

    def _done(self, reason: str) -> AcquireResult:
        s = self.session
        self.stop_reason = reason
        self.harvest()
        if reason in ("confirmed_top", "boundary_after_stuck"):
            self.driver.scroll_to_top()
            s.bridge.pause(self.config.settle_ms)
        capture_header(s)
        self.harvest()
        self.state = LoopState.DONE
        s.log(f"done ({reason}): cache={len(s.cache)} iterations={self.iterations}")
        return self._result(True)

    # Helpers
    def _limit_reached(self) -> bool:
        limit = self.config.item_limit
        return limit is not None and len(self.session.cache) >= limit

    def _report(self, res: HarvestResult, at_top: bool) -> None:
        every = self.config.progress_every
        if every <= 0 or self.iterations % every:
            return
        m = self.driver.metrics()
        info = {
            "cached": len(self.session.cache),
            "total": self.config.item_limit,
            "scroll": m.get("top"),
            "new": res.new_items,
            "at_top": at_top,
            "iterations": self.iterations,
        }
        self.session.log(f"progress {info}")
        if self.on_progress is not None:
            try:
                self.on_progress(info)
            except Exception as e:
                self.session.warn("PROGRESS_CALLBACK_ERROR", "iterate", error=str(e))

    def _result(self, ok: bool, error: Optional[str] = None) -> AcquireResult:
        return AcquireResult(
            ok=ok,
            loaded_count=len(self.session.cache),
            error=error,
            state=self.state.value,
            stop_reason=self.stop_reason,
            iterations=self.iterations,
        )


def acquire(
    session: HarvestSession,
    config: Optional[AcquireConfig] = None,
    on_progress: Optional[Callable[[Dict[str, Any]], None]] = None,
) -> AcquireResult:
    """对 session 运行一次采集；可对同一 session 多次调用以续采。"""
    return AcquisitionLoop(session, config, on_progress).run()
