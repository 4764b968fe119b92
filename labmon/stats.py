"""
统计工具

Flusher（批量平均）与 QueryAggregator（查询时聚合/排名）共用的均值与分组累加逻辑。
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from .models import ProcessSample

T = TypeVar("T")


def mean(values: Iterable[float]) -> float:
    """无权算术平均；空集合返回 0"""
    total = 0.0
    count = 0
    for value in values:
        total += value
        count += 1
    return total / count if count else 0.0


def mean_or_none(values: Iterable[Optional[float]]) -> Optional[float]:
    """只对非 None 值求平均；全部缺失时返回 None"""
    present = [v for v in values if v is not None]
    return mean(present) if present else None


def process_identity(proc: ProcessSample) -> str:
    """进程身份：name，其次 command，其次 pid 字符串"""
    if proc.name:
        return proc.name
    if proc.command:
        return proc.command
    return str(proc.pid) if proc.pid else "unknown"


def top_n(items: List[T], key: Callable[[T], float], n: int = 3) -> List[T]:
    """降序取前 n 个；sorted 为稳定排序，值相等时保持首次出现的顺序"""
    return sorted(items, key=key, reverse=True)[:n]


class MeanAccumulator:
    """
    按字段累加和与次数

    每个字段单独计数，缺失的字段不会拉低其它字段的均值。
    """

    __slots__ = ("exemplar", "observations", "_sums", "_counts")

    def __init__(self, exemplar: Any = None):
        self.exemplar = exemplar  # 首次出现的原始对象
        self.observations = 0
        self._sums: Dict[str, float] = {}
        self._counts: Dict[str, int] = {}

    def add(self, field: str, value: float):
        self._sums[field] = self._sums.get(field, 0.0) + value
        self._counts[field] = self._counts.get(field, 0) + 1

    def fields(self) -> List[str]:
        return list(self._sums)

    def mean(self, field: str) -> float:
        count = self._counts.get(field, 0)
        return self._sums[field] / count if count else 0.0


def accumulate_processes(processes: Iterable[ProcessSample]) -> Dict[str, MeanAccumulator]:
    """
    按进程身份分组累加 cpu / mem / extras

    Returns:
        {identity: MeanAccumulator}，dict 保持首次出现顺序
    """
    groups: Dict[str, MeanAccumulator] = {}
    for proc in processes:
        identity = process_identity(proc)
        acc = groups.get(identity)
        if acc is None:
            acc = groups[identity] = MeanAccumulator(exemplar=proc)
        acc.observations += 1
        acc.add("cpu", proc.cpu)
        acc.add("mem", proc.mem)
        for key, value in proc.extras.items():
            acc.add(key, value)
    return groups
