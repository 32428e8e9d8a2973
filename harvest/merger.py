"""
harvest.merger
将缓存快照按时间序重建到页面列表容器中。

顺序：header（若有）在前，其余按 (order, sequence) 升序；重新解析后仍像
占位符的记录跳过；同 key 只保留最先采集的一条。重建会清空容器原有子节点，
每个会话只允许执行一次。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .cache import ItemRecord
from .errors import ALREADY_MERGED, NO_CONTAINER, HarvestError
from .session import HarvestSession

SPACER_PX = 50


@dataclass
class MergeResult:
    ok: bool
    inserted_count: int
    total_count: int
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"ok": self.ok, "insertedCount": self.inserted_count, "totalCount": self.total_count}
        if self.error:
            out["error"] = self.error
        return out


class Merger:
    def __init__(self, session: HarvestSession, *, spacer_px: int = SPACER_PX) -> None:
        self.session = session
        self.spacer_px = spacer_px

    def _is_placeholder(self, record: ItemRecord) -> bool:
        node = self.session.classifier.parse(record.html)
        return node is None or self.session.classifier.is_placeholder(node)

    def plan(self, snapshot: Iterable[ItemRecord]) -> List[ItemRecord]:
        """纯计算：返回最终插入顺序（不触碰页面）。"""
        header: Optional[ItemRecord] = None
        by_key: Dict[str, ItemRecord] = {}
        for record in snapshot:
            if record.is_header:
                if header is None:
                    header = record
                continue
            kept = by_key.get(record.key)
            if kept is None or record.sequence < kept.sequence:
                by_key[record.key] = record
        ordered = sorted(
            (r for r in by_key.values() if not self._is_placeholder(r)),
            key=lambda r: r.sort_key,
        )
        return ([header] if header is not None else []) + ordered

    def merge(self, snapshot: Optional[Iterable[ItemRecord]] = None, container=None) -> MergeResult:
        s = self.session
        records = s.cache.snapshot() if snapshot is None else list(snapshot)
        total = len(records)
        if s.merged:
            return MergeResult(False, 0, total, error=ALREADY_MERGED)
        if not records:
            return MergeResult(False, 0, 0, error="no records to merge")
        ordered = self.plan(records)
        try:
            if container is None:
                container = s.bridge.locate_container(s.selectors)
            if container is None:
                s.warn(NO_CONTAINER, "merge")
                return MergeResult(False, 0, total, error=NO_CONTAINER)
            inserted = s.bridge.replace_children(
                container,
                [r.html for r in ordered],
                scroller=s.scroller,
                spacer_px=self.spacer_px,
            )
        except HarvestError as e:
            s.warn(e.code, e.stage, error=e.message)
            return MergeResult(False, 0, total, error=f"{e.code}: {e.message}")
        except Exception as e:
            s.warn("MERGE_ERROR", "merge", error=str(e))
            return MergeResult(False, 0, total, error=str(e))
        s.merged = True
        s.log(f"merged {inserted}/{total} records")
        return MergeResult(True, inserted, total)


def merge(session: HarvestSession, snapshot: Optional[Iterable[ItemRecord]] = None, container=None) -> MergeResult:
    return Merger(session).merge(snapshot, container)
