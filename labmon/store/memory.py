"""
内存存储

进程内的 Store 实现，用于开发调试和测试；进程退出即丢失。
"""

import itertools
import threading
from datetime import datetime
from typing import List, Optional, Tuple

from ..models import Metric
from ..utils import to_epoch_ms, truncate_to_ms
from .base import Store


class MemoryStore(Store):
    """
    内存存储后端

    与 SQLite 后端保持一致：时间在写入时截断到毫秒，查询按 (毫秒时间戳, 写入序号) 倒序，
    对应 ORDER BY ts_ms DESC, id DESC。
    """

    def __init__(self):
        self._records: List[Tuple[int, int, Metric]] = []
        self._ids = itertools.count(1)
        # 线程安全锁（API 线程池、Agent 写入线程与清理任务可能并发访问）
        self._lock = threading.Lock()

    def describe(self) -> str:
        return "memory"

    def insert(self, metric: Metric) -> str:
        timestamp = truncate_to_ms(metric.timestamp)
        with self._lock:
            seq = next(self._ids)
            stored = metric.model_copy(update={"id": str(seq), "timestamp": timestamp})
            self._records.append((seq, to_epoch_ms(timestamp), stored))
            return stored.id

    def find(
        self,
        pc_id: Optional[str] = None,
        lab_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[Metric]:
        with self._lock:
            matched = [
                (seq, ts_ms, m) for seq, ts_ms, m in self._records
                if (pc_id is None or m.pc_id == pc_id)
                and (lab_id is None or m.lab_id == lab_id)
            ]
        matched.sort(key=lambda item: (item[1], item[0]), reverse=True)
        return [m for _, _, m in matched[:max(limit, 0)]]

    def distinct_pc_ids(self, lab_id: Optional[str] = None) -> List[str]:
        with self._lock:
            return sorted({m.pc_id for _, _, m in self._records if lab_id is None or m.lab_id == lab_id})

    def distinct_lab_ids(self) -> List[str]:
        with self._lock:
            return sorted({m.lab_id for _, _, m in self._records})

    def delete_before(self, cutoff: datetime) -> int:
        cutoff_ms = to_epoch_ms(cutoff)
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r[1] >= cutoff_ms]
            return before - len(self._records)
