"""
批量上报任务

每隔 batch_seconds 读出缓冲区全部采样，求平均后写入一条 Metric；写入是协程，
期间采样循环照常运行。写入成功才删除已上报的记录，失败则原样保留，
下个周期连同新采样一起重新平均。
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..models import NUMERIC_FIELDS, Metric, ProcessSample, Sample
from ..stats import accumulate_processes, mean, mean_or_none
from ..store import MetricWriter
from ..utils import utc_now
from .buffer import LocalBuffer

logger = logging.getLogger(__name__)


def merge_processes(samples: List[Sample]) -> List[ProcessSample]:
    """
    合并多次采样中的进程

    按进程身份分组，cpu/mem 以及每个 extras 字段分别求平均，保持首次出现顺序。
    """
    groups = accumulate_processes(p for s in samples for p in s.processes)

    merged = []
    for acc in groups.values():
        first: ProcessSample = acc.exemplar
        extras = {
            key: acc.mean(key)
            for key in acc.fields()
            if key not in ("cpu", "mem")
        }
        merged.append(ProcessSample(
            pid=first.pid,
            name=first.name,
            command=first.command,
            cpu=acc.mean("cpu"),
            mem=acc.mean("mem"),
            extras=extras,
        ))
    return merged


def calculate_average(
    samples: List[Sample],
    pc_id: str,
    lab_id: str,
    timestamp: datetime,
) -> Metric:
    """
    计算批量平均

    Args:
        samples: 非空的采样列表
        pc_id: 机器 ID
        lab_id: 实验室 ID
        timestamp: 记录时间（取上报时刻，而不是最后一条采样的时间）

    Returns:
        sample_count = len(samples) 的 Metric
    """
    if not samples:
        raise ValueError("cannot average an empty batch")

    fields = {
        field: mean(getattr(s, field) for s in samples)
        for field in NUMERIC_FIELDS
    }

    return Metric(
        pc_id=pc_id,
        lab_id=lab_id,
        timestamp=timestamp,
        sample_count=len(samples),
        net_kbps=mean_or_none(s.net_kbps for s in samples),
        processes=merge_processes(samples),
        **fields
    )


class Flusher:
    """
    批量上报器

    Args:
        buffer: 本地缓冲
        writer: 入库端（HTTP 或 Store）
        pc_id: 机器 ID
        lab_id: 实验室 ID
        interval: 上报间隔（秒）
        clock: 时间来源（测试时可注入）
    """

    def __init__(
        self,
        buffer: LocalBuffer,
        writer: MetricWriter,
        pc_id: str,
        lab_id: str,
        interval: float = 10.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.buffer = buffer
        self.writer = writer
        self.pc_id = pc_id
        self.lab_id = lab_id
        self.interval = interval
        self.clock = clock


    async def flush_once(self) -> Optional[Metric]:
        """
        执行一次上报

        写入期间采样循环继续追加；成功后只删除本次读到的字节，
        写入期间追加的采样留到下个周期。

        Returns:
            成功写入的 Metric；缓冲为空、读取失败或写入失败时返回 None
        """
        try:
            samples, consumed = self.buffer.read_batch()
        except OSError as e:
            logger.error(f"Failed to read buffer {self.buffer.path}: {e}")
            return None

        if not samples:
            return None

        metric = calculate_average(samples, self.pc_id, self.lab_id, self.clock())

        try:
            metric_id = await self.writer.write(metric)
        except Exception as e:
            # 保留缓冲，下个周期重试
            logger.error(
                f"Failed to persist {len(samples)} sample(s) via {self.writer.describe()}: {e}; "
                f"keeping buffer ({self.buffer.size()} bytes)"
            )
            return None

        try:
            self.buffer.discard(consumed)
        except OSError as e:
            # 已入库但未删除：下次会重复上报（至少一次语义可接受）
            logger.error(f"Failed to discard flushed records from {self.buffer.path}: {e}")

        logger.info(
            f"Flushed {metric.sample_count} sample(s) as metric {metric_id}: "
            f"CPU {metric.cpu_load_percent:.1f}%, Mem {metric.mem_used_percent:.1f}%"
        )
        return metric.model_copy(update={"id": metric_id})

    async def run(self, stop_event: asyncio.Event):
        """
        运行上报循环，直到 stop_event 被设置

        退出前不做最终上报，由调用方在所有任务结束后调用 final_flush。
        """
        logger.info(f"Starting flush loop (interval={self.interval}s)")

        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.flush_once()
            except Exception as e:
                logger.error(f"Flush loop error: {e}", exc_info=True)

        logger.info("Flush loop stopped")

    async def final_flush(self) -> Optional[Metric]:
        """退出前的最后一次尽力上报；失败时缓冲留在磁盘，下次启动继续"""
        logger.info("Performing final flush before exit")
        metric = await self.flush_once()
        if metric is None and self.buffer.size() > 0:
            logger.warning(f"Final flush did not complete; {self.buffer.path} kept for next run")
        return metric
