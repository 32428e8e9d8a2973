"""
harvest.cache
会话级消息缓存：按 key 去重，首次写入即定稿。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from . import constants as C


@dataclass(frozen=True)
class ItemRecord:
    """单条采集记录。

    key: 稳定标识（原生 id 属性或合成 key）
    order: 时间序（毫秒，任意精度 int）
    sequence: 采集时递增序号，order 相同时作为次序
    html: 已修正媒体地址的 outerHTML
    """

    key: str
    order: int
    sequence: int
    html: str

    @property
    def sort_key(self):
        return (self.order, self.sequence, self.key)

    @property
    def is_header(self) -> bool:
        return self.key == C.HEADER_KEY

    def to_dict(self) -> Dict[str, Any]:
        # order 以字符串输出，避免 JSON 消费方按 double 截断
        return {"key": self.key, "order": str(self.order), "sequence": self.sequence, "html": self.html}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ItemRecord":
        return cls(
            key=str(data["key"]),
            order=int(data["order"]),
            sequence=int(data.get("sequence", 0)),
            html=str(data.get("html") or ""),
        )


class MessageCache:
    def __init__(self) -> None:
        self._records: Dict[str, ItemRecord] = {}
        self._header: Optional[ItemRecord] = None
        self._next_sequence = 0

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def has(self, key: str) -> bool:
        return key in self._records

    def get(self, key: str) -> Optional[ItemRecord]:
        return self._records.get(key)

    def next_sequence(self) -> int:
        seq = self._next_sequence
        self._next_sequence += 1
        return seq

    def insert(self, record: ItemRecord) -> bool:
        """仅在 key 不存在时写入；返回是否写入。"""
        if record.key == C.HEADER_KEY or record.key in self._records:
            return False
        self._records[record.key] = record
        if record.sequence >= self._next_sequence:
            self._next_sequence = record.sequence + 1
        return True

    def add(self, key: str, order: int, html: str) -> Optional[ItemRecord]:
        """分配序号并写入；key 已存在时返回 None。"""
        if self.has(key) or key == C.HEADER_KEY:
            return None
        record = ItemRecord(key=key, order=int(order), sequence=self.next_sequence(), html=html)
        self._records[key] = record
        return record

    @property
    def header(self) -> Optional[ItemRecord]:
        return self._header

    def set_header(self, html: str) -> bool:
        if self._header is not None or not html:
            return False
        self._header = ItemRecord(key=C.HEADER_KEY, order=C.HEADER_ORDER, sequence=C.HEADER_SEQUENCE, html=html)
        return True

    def snapshot(self) -> List[ItemRecord]:
        """全部记录（含 header）的副本；顺序无意义，排序交给 Merger。"""
        records = list(self._records.values())
        if self._header is not None:
            records.insert(0, self._header)
        return records
