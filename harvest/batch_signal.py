"""
harvest.batch_signal
监听页面 console：渲染端打印“已拉取一批历史消息”类日志时置位，
采集循环据此在本轮多等一会儿再收割。
"""

from __future__ import annotations

from typing import Any, Iterable


class BatchLoadSignal:
    def __init__(self, bridge, markers: Iterable[str]) -> None:
        self._bridge = bridge
        self._markers = [m for m in markers if m]
        self._hit = False
        self._attached = False
        self.count = 0

    def _on_console(self, msg: Any) -> None:
        try:
            text = msg.text if not callable(getattr(msg, "text", None)) else msg.text()
        except Exception:
            return
        if any(m in (text or "") for m in self._markers):
            self._hit = True
            self.count += 1

    def attach(self) -> None:
        if self._attached or not self._markers:
            return
        try:
            self._bridge.on_console(self._on_console)
            self._attached = True
        except Exception:
            self._attached = False

    def detach(self) -> None:
        if not self._attached:
            return
        self._bridge.off_console(self._on_console)
        self._attached = False

    def consume(self) -> bool:
        """返回自上次 consume 以来是否出现过批量加载日志，并复位。"""
        hit, self._hit = self._hit, False
        return hit
