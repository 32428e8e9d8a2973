from __future__ import annotations

"""
harvest.config

采集引擎的配置结构：选择器策略列表与滚动/停止策略参数。
所有阈值都可覆盖（JSON 配置 > 环境变量 HARVEST_<NAME> > 默认值）。
"""

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional

from . import constants as C
from .utils import cast_like


@dataclass
class SelectorConfig:
    """定位滚动容器/消息项/占位符/边界文本的策略列表。"""

    scroller_selectors: List[str] = field(default_factory=lambda: list(C.SCROLLER_SELECTORS))
    list_selectors: List[str] = field(default_factory=lambda: list(C.LIST_SELECTORS))
    item_selectors: List[str] = field(default_factory=lambda: list(C.ITEM_SELECTORS))
    placeholder_tokens: List[str] = field(default_factory=lambda: list(C.PLACEHOLDER_TOKENS))
    boundary_phrases: List[str] = field(default_factory=lambda: list(C.BOUNDARY_PHRASES))
    header_selectors: List[str] = field(default_factory=lambda: list(C.HEADER_SELECTORS))
    avatar_selectors: List[str] = field(default_factory=lambda: list(C.AVATAR_SELECTORS))

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "SelectorConfig":
        return cls(**_pick(cls, data or {}))

    def to_js(self) -> Dict[str, Any]:
        """传给页面脚本的参数（键名与 scripts.py 中的 JS 一致）。"""
        return {
            "scrollerSelectors": list(self.scroller_selectors),
            "listSelectors": list(self.list_selectors),
            "itemSelectors": list(self.item_selectors),
            "boundaryPhrases": [p.lower() for p in self.boundary_phrases],
            "headerSelectors": list(self.header_selectors),
            "avatarSelectors": list(self.avatar_selectors),
        }


@dataclass
class AcquireConfig:
    """滚动采集循环的参数。

    max_items: 缓存达到该数量即停止；None 表示不设上限
    stability_window_ms: 静默窗口（实际取 max(min_stability_ms, 此值)）
    no_growth_limit: 非 stop_at_top 模式下连续无增长的迭代上限
    stop_at_top: True 时以“到达顶部并确认”为停止条件
    """

    max_items: Optional[int] = None
    stability_window_ms: int = 1200
    no_growth_limit: int = 15
    stop_at_top: bool = True
    min_stability_ms: int = 600
    max_wait_ms: int = 5000
    # 卡住判定与纠偏
    bump_after: int = 2
    stuck_bump_limit: int = 4
    bump_px: int = 0
    # 顶部确认轮数
    top_confirm_rounds: int = 2
    settle_ms: int = 500
    top_settle_ms: int = 1000
    max_iterations: int = 2000
    progress_every: int = 5
    batch_markers: List[str] = field(default_factory=lambda: list(C.BATCH_MARKERS))
    batch_extra_wait_ms: int = 300

    @property
    def effective_stability_ms(self) -> int:
        return max(int(self.min_stability_ms), int(self.stability_window_ms))

    @property
    def item_limit(self) -> Optional[int]:
        if self.max_items is None or int(self.max_items) <= 0:
            return None
        return int(self.max_items)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "AcquireConfig":
        return cls(**_pick(cls, data or {}))

    @classmethod
    def from_env(cls, base: Optional["AcquireConfig"] = None) -> "AcquireConfig":
        """以 HARVEST_<NAME> 环境变量覆盖 base（或默认值）。"""
        cfg = base or cls()
        values: Dict[str, Any] = {}
        for f in fields(cls):
            raw = os.getenv("HARVEST_" + f.name.upper())
            if raw is None:
                continue
            current = getattr(cfg, f.name)
            if f.name == "max_items":
                values[f.name] = cast_like(raw, 0) or None
            else:
                values[f.name] = cast_like(raw, current)
        return replace(cfg, **values) if values else cfg

    def with_overrides(self, data: Optional[Mapping[str, Any]]) -> "AcquireConfig":
        """以 mapping（如 JSON 配置的 acquire 段）覆盖当前值；非 dict 时原样返回。"""
        if not isinstance(data, Mapping):
            return self
        values = _pick(type(self), data)
        return replace(self, **values) if values else self


def _pick(cls, data: Mapping[str, Any]) -> Dict[str, Any]:
    """只保留 dataclass 已声明的键，并按默认值类型转换。"""
    defaults = cls()
    out: Dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        if f.name == "max_items":
            out[f.name] = None if value in (None, "", 0) else int(value)
            continue
        out[f.name] = cast_like(value, getattr(defaults, f.name))
    return out
