"""
harvest.session
一次采集会话：绑定一个页面文档，跨 acquire/merge 多次调用保留缓存与句柄。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .cache import MessageCache
from .classifier import ElementClassifier
from .config import SelectorConfig
from .page_bridge import PageBridge


@dataclass(frozen=True)
class TopPointer:
    """当前已知最靠上（order 最小）的可见消息项。"""

    ref: int
    key: str
    order: int


class HarvestSession:
    def __init__(
        self,
        bridge,
        selectors: Optional[SelectorConfig] = None,
        *,
        classifier: Optional[ElementClassifier] = None,
        verbose: bool = False,
    ) -> None:
        self.bridge = bridge
        self.selectors = selectors or SelectorConfig()
        self.classifier = classifier or ElementClassifier(self.selectors.placeholder_tokens)
        self.cache = MessageCache()
        self.scroller = None
        self.topmost: Optional[TopPointer] = None
        self.warnings: List[Dict[str, Any]] = []
        self.merged = False
        self.verbose = verbose
        self._registry = None

    @classmethod
    def for_page(cls, page, selectors: Optional[SelectorConfig] = None, **kwargs) -> "HarvestSession":
        return cls(PageBridge(page), selectors, **kwargs)

    @property
    def registry(self):
        """页面端元素引用表（懒创建，会话内复用）。"""
        if self._registry is None:
            self._registry = self.bridge.create_registry()
        return self._registry

    def log(self, msg: str) -> None:
        if self.verbose:
            print(f"[harvest] {msg}")

    def warn(self, code: str, stage: str, **extra: Any) -> None:
        item = {"code": code, "stage": stage}
        item.update(extra)
        self.warnings.append(item)
        self.log(f"warn {code}@{stage} {extra.get('error', '')}".rstrip())

    def close(self) -> None:
        """释放 Python 侧持有的句柄（页面已关闭时静默）。"""
        for handle in (self.scroller, self._registry):
            if handle is None:
                continue
            try:
                handle.dispose()
            except Exception:
                pass
        self.scroller = None
        self._registry = None
