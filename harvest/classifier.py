"""
harvest.classifier
消息项分类：占位符判定、稳定 key 提取、时间序 order 提取。

输入是消息项的 outerHTML（由页面端一次性序列化），用 BeautifulSoup 解析后
在 Python 侧判定，因此本模块是纯函数式的，可直接用 HTML 片段测试。

order 的优先级：
  1. 后代 time[datetime] 的时间戳
  2. 标识属性中的雪花 ID 解码：(id >> 22) + 1420070400000
  3. 标识属性中的长数字本身（大于 2000-01-01 的毫秒值）
  4. 兜底：capture_ms + index
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Iterable, Optional

from bs4 import BeautifulSoup, Tag

from . import constants as C
from .utils import now_ms, text_digest

_LONG_DIGITS = re.compile(r"\d{%d,}" % C.SNOWFLAKE_MIN_DIGITS)
_DIGITS = re.compile(r"\d{6,}")
_MEDIA_TAGS = ["img", "video", "iframe", "embed"]


@dataclass(frozen=True)
class Classification:
    is_placeholder: bool
    key: str
    order: int


def decode_snowflake(value: int) -> int:
    """雪花 ID -> 毫秒时间戳（Python int 任意精度，无截断）。"""
    return (int(value) >> C.SNOWFLAKE_SHIFT) + C.SNOWFLAKE_EPOCH_MS


def parse_datetime_ms(text: Optional[str]) -> Optional[int]:
    """解析 ISO 8601（或 RFC 2822）时间串为毫秒；无时区按 UTC。失败返回 None。"""
    s = (text or "").strip()
    if not s:
        return None
    dt = None
    try:
        dt = datetime.fromisoformat(s[:-1] + "+00:00" if s.endswith(("Z", "z")) else s)
    except ValueError:
        try:
            dt = parsedate_to_datetime(s)
        except (TypeError, ValueError, IndexError):
            return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def first_element(html: str) -> Optional[Tag]:
    """解析 HTML 片段并返回第一个元素节点。"""
    soup = BeautifulSoup(html or "", "html.parser")
    for child in soup.children:
        if isinstance(child, Tag):
            return child
    return None


def _class_string(tag: Tag) -> str:
    cls = tag.get("class")
    if isinstance(cls, (list, tuple)):
        return " ".join(cls)
    return str(cls or "")


class ElementClassifier:
    def __init__(
        self,
        placeholder_tokens: Optional[Iterable[str]] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        tokens = [t for t in (placeholder_tokens or C.PLACEHOLDER_TOKENS) if t]
        self._token_re = re.compile("|".join(re.escape(t) for t in tokens), re.I) if tokens else None
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    def parse(self, html: str) -> Optional[Tag]:
        return first_element(html)

    def classify(self, node: Tag, index: int, capture_ms: Optional[int] = None) -> Classification:
        return Classification(
            is_placeholder=self.is_placeholder(node),
            key=self.extract_key(node, index),
            order=self.extract_order(node, index, capture_ms),
        )

    def classify_html(self, html: str, index: int, capture_ms: Optional[int] = None) -> Optional[Classification]:
        node = self.parse(html)
        if node is None:
            return None
        return self.classify(node, index, capture_ms)

    # Placeholder
    def _has_token(self, tag: Tag) -> bool:
        return bool(self._token_re and self._token_re.search(_class_string(tag)))

    def is_placeholder(self, node: Tag) -> bool:
        if (node.get("role") or "").lower() == "progressbar":
            return True
        if (node.get("aria-busy") or "").lower() == "true":
            return True
        if self._has_token(node):
            return True
        text = node.get_text().strip()
        if not text and node.find(_MEDIA_TAGS) is None:
            return True
        return node.find(lambda t: isinstance(t, Tag) and self._has_token(t)) is not None

    # Key
    def extract_key(self, node: Tag, index: int) -> str:
        for attr in C.KEY_ATTRS:
            value = node.get(attr)
            if isinstance(value, list):
                value = " ".join(value)
            if value and str(value).strip():
                return str(value).strip()
        text = node.get_text().strip()
        # 前 40 字符可能相同，追加全文摘要避免不同内容撞 key
        return f"idx-{index}-{text[:40]}#{text_digest(text)}"

    # Order
    def _plausible(self, ms: int) -> bool:
        return C.MIN_PLAUSIBLE_MS <= ms <= self.now() + C.ONE_DAY_MS

    def _identifier(self, node: Tag) -> str:
        for attr in C.ORDER_ID_ATTRS:
            value = node.get(attr)
            if value:
                return str(value)
        return ""

    def extract_order(self, node: Tag, index: int, capture_ms: Optional[int] = None) -> int:
        time_el = node.select_one("time[datetime]")
        if time_el is not None:
            ms = parse_datetime_ms(time_el.get("datetime"))
            if ms is not None and self._plausible(ms):
                return ms
        ident = self._identifier(node)
        if ident:
            # 形如 chat-messages-<channel>-<message>：取最后一段长数字（消息 ID）
            long_runs = _LONG_DIGITS.findall(ident)
            if long_runs:
                ms = decode_snowflake(int(long_runs[-1]))
                if self._plausible(ms):
                    return ms
            for run in reversed(_DIGITS.findall(ident)):
                literal = int(run)
                if literal > C.MIN_PLAUSIBLE_MS:
                    return literal
        base = self.now() if capture_ms is None else int(capture_ms)
        return base + int(index)
