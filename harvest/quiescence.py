"""
harvest.quiescence
等待页面“安静”：MutationObserver 在静默窗口内无变更或达到最长等待即返回。

该等待只是节奏控制，调用方不区分 stable/超时；页面端脚本出错时退化为固定等待。
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from .errors import HarvestError


class QuiescenceWaiter:
    def __init__(self, bridge, warn: Optional[Callable[..., None]] = None) -> None:
        self._bridge = bridge
        self._warn = warn
        self.last: Dict[str, Any] = {}

    def wait(self, stability_ms: int, max_wait_ms: int) -> Dict[str, Any]:
        stability_ms = max(0, int(stability_ms))
        max_wait_ms = max(stability_ms, int(max_wait_ms))
        try:
            self.last = self._bridge.wait_quiet(stability_ms, max_wait_ms) or {}
        except HarvestError:
            raise
        except Exception as e:
            if self._warn:
                self._warn("QUIESCENCE_FALLBACK", "quiescence", error=str(e))
            self._bridge.pause(stability_ms)
            self.last = {"stable": False, "waitedMs": stability_ms, "fallback": True}
        return self.last
