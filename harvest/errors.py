"""
harvest.errors
异常类型定义。

HarvestError 是采集引擎的统一错误封装：会话级致命错误（文档不可用、
找不到滚动容器）以及 CLI 阶段的启动/导航错误都用它表示，便于写入
meta.json 并由调用方区分原因。
"""

from dataclasses import dataclass
from typing import Optional

DOCUMENT_UNAVAILABLE = "DOCUMENT_UNAVAILABLE"
NO_SCROLLER = "NO_SCROLLER"
NO_CONTAINER = "NO_CONTAINER"
ALREADY_MERGED = "ALREADY_MERGED"


@dataclass
class HarvestError(Exception):
    """采集致命错误。

    code: 错误码（如 DOCUMENT_UNAVAILABLE/NO_SCROLLER/NAV_ERROR 等）
    stage: 出错阶段（init/priming/iterate/merge/navigate/...）
    message: 人类可读的错误信息
    original: 可选，原始异常对象
    """

    code: str
    stage: str
    message: str
    original: Optional[Exception] = None

    def __str__(self) -> str:  # pragma: no cover
        return f"[{self.code}@{self.stage}] {self.message}"

    @property
    def document_gone(self) -> bool:
        return self.code == DOCUMENT_UNAVAILABLE
