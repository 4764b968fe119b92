"""
查询聚合引擎

无状态：每次调用都从本次查到的 Metric 重新计算，不做跨调用缓存。
提供：
- 单机原始序列与平均快照
- 实验室 10s 时间桶序列
- 实验室平均快照 + 进程/机器 Top-3 排名
"""

import logging
from typing import Dict, List, Optional

from ..config import QueryConfig
from ..models import (
    EXTRA_DISK_KBPS,
    EXTRA_NET_KBPS,
    Bucket,
    LabAverage,
    MachineRank,
    Metric,
    PcAverage,
    ProcessRank,
    ProcessRankings,
)
from ..stats import MeanAccumulator, accumulate_processes, mean, top_n
from ..store import Store
from ..utils import from_epoch_ms, to_epoch_ms

logger = logging.getLogger(__name__)

TOP_N = 3

# 快照/分桶中求平均的字段（uptime_seconds 取最新一条，不求平均）
AVERAGED_FIELDS = (
    "cpu_load_percent",
    "mem_used_percent",
    "disk_used_percent",
    "net_used_percent",
    "disk_read_kbps",
    "disk_write_kbps",
)


def field_means(metrics: List[Metric]) -> Dict[str, float]:
    """各数值字段的无权平均；缺失的 net_kbps 按 0 计入"""
    means = {
        field: mean(getattr(m, field) for m in metrics)
        for field in AVERAGED_FIELDS
    }
    means["net_kbps"] = mean(m.net_kbps or 0.0 for m in metrics)
    return means


def bucket_key(metric: Metric, width_ms: int) -> int:
    """全局对齐的桶起点：floor(epoch_ms / width) * width"""
    return to_epoch_ms(metric.timestamp) // width_ms * width_ms


def bucket_metrics(metrics: List[Metric], width_ms: int = 10000) -> List[Bucket]:
    """
    按固定宽度时间窗分桶

    桶边界与纪元对齐（而不是与第一条记录对齐），重复查询得到相同的边界。

    Returns:
        按桶起点升序排列的 Bucket 列表
    """
    groups: Dict[int, List[Metric]] = {}
    for metric in metrics:
        groups.setdefault(bucket_key(metric, width_ms), []).append(metric)

    return [
        Bucket(
            timestamp=from_epoch_ms(key),
            bucket_ms=key,
            count=len(members),
            **field_means(members)
        )
        for key, members in sorted(groups.items())
    ]


def rank_processes(metrics: List[Metric], n: int = TOP_N) -> ProcessRankings:
    """
    进程排名

    按进程身份汇总所有 Metric 中的进程采样，cpu/mem 对每次出现计数，
    net/disk 只对带有该 extras 字段的出现计数。
    top_by_net / top_by_disk 仅在至少一个进程均值 > 0 时输出，否则为空列表。
    """
    groups = accumulate_processes(p for m in metrics for p in m.processes)

    ranks = [
        ProcessRank(
            name=identity,
            avg_cpu=acc.mean("cpu"),
            avg_mem=acc.mean("mem"),
            avg_net_kbps=acc.mean(EXTRA_NET_KBPS),
            avg_disk_kbps=acc.mean(EXTRA_DISK_KBPS),
            samples=acc.observations,
        )
        for identity, acc in groups.items()
    ]

    rankings = ProcessRankings(
        top_by_cpu=top_n(ranks, lambda r: r.avg_cpu, n),
        top_by_mem=top_n(ranks, lambda r: r.avg_mem, n),
    )
    if any(r.avg_net_kbps > 0 for r in ranks):
        rankings.top_by_net = top_n(ranks, lambda r: r.avg_net_kbps, n)
    if any(r.avg_disk_kbps > 0 for r in ranks):
        rankings.top_by_disk = top_n(ranks, lambda r: r.avg_disk_kbps, n)
    return rankings


def machine_ranks(metrics: List[Metric]) -> List[MachineRank]:
    """按机器汇总均值，保持机器首次出现顺序"""
    groups: Dict[str, MeanAccumulator] = {}
    for metric in metrics:
        acc = groups.get(metric.pc_id)
        if acc is None:
            acc = groups[metric.pc_id] = MeanAccumulator()
        acc.observations += 1
        acc.add("cpu", metric.cpu_load_percent)
        acc.add("mem", metric.mem_used_percent)
        acc.add("disk", metric.disk_used_percent)
        # 没有 KB/s 读数的记录退而使用网络使用率
        acc.add("net", metric.net_kbps if metric.net_kbps is not None else metric.net_used_percent)

    return [
        MachineRank(
            pc_id=pc_id,
            avg_cpu_load_percent=acc.mean("cpu"),
            avg_mem_used_percent=acc.mean("mem"),
            avg_disk_used_percent=acc.mean("disk"),
            avg_net_kbps=acc.mean("net"),
            samples=acc.observations,
        )
        for pc_id, acc in groups.items()
    ]


class QueryAggregator:
    """
    Dashboard 查询引擎

    Args:
        store: 数据存储
        config: 默认条数与上限
    """

    def __init__(self, store: Store, config: Optional[QueryConfig] = None):
        self.store = store
        self.config = config or QueryConfig()

    @staticmethod
    def clamp_limit(limit: Optional[int], default: int, cap: int) -> int:
        """未指定时取默认值，并限制在 [1, cap]"""
        if limit is None:
            limit = default
        return max(1, min(limit, cap))

    # =========================================================================
    # 列表
    # =========================================================================

    def list_labs(self) -> List[str]:
        return self.store.distinct_lab_ids()

    def list_pcs(self, lab_id: str) -> List[str]:
        return self.store.distinct_pc_ids(lab_id=lab_id)

    # =========================================================================
    # 单机
    # =========================================================================

    def pc_series(self, pc_id: str, lab_id: str, limit: Optional[int] = None) -> List[Metric]:
        """最近 N 条原始记录，按时间升序"""
        limit = self.clamp_limit(limit, self.config.series_limit, self.config.series_max)
        docs = self.store.find(pc_id=pc_id, lab_id=lab_id, limit=limit)
        return list(reversed(docs))

    def pc_average(self, pc_id: str, lab_id: str, limit: Optional[int] = None) -> Optional[PcAverage]:
        """
        最近 N 条记录的平均快照

        timestamp / uptime_seconds 取最新一条；没有记录时返回 None。
        """
        limit = self.clamp_limit(limit, self.config.pc_avg_limit, self.config.pc_avg_max)
        docs = self.store.find(pc_id=pc_id, lab_id=lab_id, limit=limit)
        if not docs:
            return None

        latest = docs[0]
        return PcAverage(
            pc_id=pc_id,
            lab_id=lab_id,
            count=len(docs),
            timestamp=latest.timestamp,
            uptime_seconds=latest.uptime_seconds,
            **field_means(docs)
        )

    # =========================================================================
    # 实验室
    # =========================================================================

    def lab_series(self, lab_id: str, limit: Optional[int] = None) -> List[Bucket]:
        """实验室最近 N 条记录（跨所有机器）按时间桶聚合"""
        limit = self.clamp_limit(limit, self.config.lab_series_limit, self.config.lab_series_max)
        docs = self.store.find(lab_id=lab_id, limit=limit)
        return bucket_metrics(docs, self.config.bucket_ms)

    def lab_average(self, lab_id: str, limit: Optional[int] = None) -> Optional[LabAverage]:
        """实验室平均快照 + 进程排名 + 机器排名；没有记录时返回 None"""
        limit = self.clamp_limit(limit, self.config.lab_avg_limit, self.config.lab_avg_max)
        docs = self.store.find(lab_id=lab_id, limit=limit)
        if not docs:
            return None

        latest = docs[0]
        machines = machine_ranks(docs)

        logger.debug(f"Lab {lab_id}: ranking {len(machines)} machine(s) over {len(docs)} metric(s)")

        return LabAverage(
            lab_id=lab_id,
            count=len(docs),
            timestamp=latest.timestamp,
            uptime_seconds=latest.uptime_seconds,
            processes=rank_processes(docs),
            top_pcs_by_disk=top_n(machines, lambda r: r.avg_disk_used_percent),
            top_pcs_by_net=top_n(machines, lambda r: r.avg_net_kbps),
            top_pcs_by_cpu=top_n(machines, lambda r: r.avg_cpu_load_percent),
            top_pcs_by_mem=top_n(machines, lambda r: r.avg_mem_used_percent),
            **field_means(docs)
        )
