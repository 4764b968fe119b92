"""
采样器

每个采样周期向指标提供者拉取一次读数，组装成 Sample。
采集失败的字段一律补 0 并记录日志，绝不向调度循环抛出异常。
"""

import asyncio
import logging
import math
from datetime import datetime
from typing import Any, Callable, Dict, List

from pydantic import ValidationError

from ..models import ProcessSample, Sample
from ..utils import utc_now
from .collectors import MetricsProvider

logger = logging.getLogger(__name__)

# 提供者方法 -> 其负责的 Sample 字段
READINGS = {
    "cpu": ("cpu_load_percent",),
    "memory": ("mem_used_percent",),
    "disk": ("disk_used_percent", "disk_read_kbps", "disk_write_kbps"),
    "network": ("net_kbps", "net_used_percent"),
    "uptime": ("uptime_seconds",),
}


def _valid_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


class Sampler:
    """
    采样器

    Args:
        provider: 指标提供者
        pc_id: 机器 ID
        lab_id: 实验室 ID
        clock: 时间来源（测试时可注入）
    """

    def __init__(
        self,
        provider: MetricsProvider,
        pc_id: str,
        lab_id: str,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.provider = provider
        self.pc_id = pc_id
        self.lab_id = lab_id
        self.clock = clock

    async def sample(self) -> Sample:
        """采集一次，返回 Sample"""
        timestamp = self.clock()
        names = list(READINGS)

        # 并发调用所有采集器
        results = await asyncio.gather(
            *(getattr(self.provider, name)() for name in names),
            self.provider.processes(),
            return_exceptions=True
        )

        fields: Dict[str, float] = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception) or not isinstance(result, dict):
                reason = repr(result) if isinstance(result, Exception) else type(result).__name__
                logger.warning(f"Collector '{name}' failed ({reason}), using 0 for {READINGS[name]}")
                fields.update((field, 0.0) for field in READINGS[name])
                continue

            for field in READINGS[name]:
                value = result.get(field)
                if _valid_number(value):
                    fields[field] = float(value)
                else:
                    logger.warning(f"Metric '{field}' unavailable ({value!r}), using 0")
                    fields[field] = 0.0

        processes = self._parse_processes(results[-1])

        return Sample(
            pc_id=self.pc_id,
            lab_id=self.lab_id,
            timestamp=timestamp,
            processes=processes,
            **fields
        )

    @staticmethod
    def _parse_processes(result: Any) -> List[ProcessSample]:
        """校验进程列表；整体失败返回空列表，单条非法的条目丢弃"""
        if isinstance(result, Exception):
            logger.warning(f"Collector 'processes' failed: {result!r}, using empty list")
            return []
        if not isinstance(result, list):
            logger.warning(f"Collector 'processes' returned {type(result).__name__}, using empty list")
            return []

        processes = []
        for item in result:
            try:
                processes.append(ProcessSample.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Dropping invalid process entry {item!r}: {e.error_count()} error(s)")
        return processes
