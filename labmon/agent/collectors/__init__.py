"""
数据采集器模块

包含 CPU、内存、磁盘、网络、进程采集器，以及组合它们的 PsutilProvider
"""

import time
from typing import Any, Dict, List, Optional

import psutil

from .base import MetricsProvider, RateMeter
from .cpu import get_cpu_percent
from .disk import DiskIOMeter, get_disk_used_percent
from .memory import get_mem_used_percent
from .network import NetworkMeter
from .processes import ProcessCollector

__all__ = [
    "MetricsProvider",
    "PsutilProvider",
    "RateMeter",
    "get_cpu_percent",
    "get_disk_used_percent",
    "get_mem_used_percent",
]


class PsutilProvider(MetricsProvider):
    """
    基于 psutil 的指标提供者

    速率类指标的上一次计数保存在实例上，每个 Agent 持有一个实例。
    """

    def __init__(self, disks: Optional[List[str]] = None, top_processes: int = 5):
        self.disks = disks or ["/"]
        self.top_processes = top_processes
        self._disk_io = DiskIOMeter()
        self._network = NetworkMeter()
        self._processes = ProcessCollector()

    async def cpu(self) -> Dict[str, float]:
        return {"cpu_load_percent": await get_cpu_percent()}

    async def memory(self) -> Dict[str, float]:
        return {"mem_used_percent": await get_mem_used_percent()}

    async def disk(self) -> Dict[str, float]:
        readings = {}
        used_pct = await get_disk_used_percent(self.disks)
        if used_pct is not None:
            readings["disk_used_percent"] = used_pct
        try:
            read_kbps, write_kbps = await self._disk_io.read()
        except (RuntimeError, OSError):
            # 读写速率缺失，由 Sampler 补 0 并记录
            return readings
        readings["disk_read_kbps"] = read_kbps
        readings["disk_write_kbps"] = write_kbps
        return readings

    async def network(self) -> Dict[str, float]:
        kbps, used_pct = await self._network.read()
        return {"net_kbps": kbps, "net_used_percent": used_pct}

    async def uptime(self) -> Dict[str, float]:
        return {"uptime_seconds": max(time.time() - psutil.boot_time(), 0.0)}

    async def processes(self) -> List[Dict[str, Any]]:
        return await self._processes.top_processes(self.top_processes)
