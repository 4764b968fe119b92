"""
进程采集器

取 CPU 占用最高的若干进程；平台支持时附带进程级磁盘读写速率。
"""

from typing import Any, Dict, List, Optional

import psutil

from .base import RateMeter

PROCESS_ATTRS = ["pid", "name", "cmdline", "cpu_percent", "memory_percent"]


class ProcessCollector:
    """
    进程采集

    psutil.process_iter 会缓存 Process 对象，cpu_percent 从第二次采集起才有意义。
    """

    def __init__(self, meter: Optional[RateMeter] = None):
        self._io_meter = meter or RateMeter()

    async def top_processes(self, limit: int = 5) -> List[Dict[str, Any]]:
        """
        Returns:
            [{"pid": 1234, "name": "python", "command": "...", "cpu": 12.5, "mem": 3.1,
              "extras": {"disk_kbps": 40.0}}]
        """
        if limit <= 0:
            return []

        procs = []
        for proc in psutil.process_iter(PROCESS_ATTRS):
            info = proc.info
            procs.append((proc, info))

        self._io_meter.forget_except(info["pid"] for _, info in procs)

        procs.sort(key=lambda item: item[1].get("cpu_percent") or 0.0, reverse=True)

        result = []
        for proc, info in procs[:limit]:
            cmdline = info.get("cmdline") or []
            entry = {
                "pid": info["pid"],
                "name": info.get("name") or None,
                "command": " ".join(cmdline) or None,
                "cpu": float(info.get("cpu_percent") or 0.0),
                "mem": float(info.get("memory_percent") or 0.0),
                "extras": {},
            }

            disk_kbps = self._disk_kbps(proc)
            if disk_kbps is not None:
                entry["extras"]["disk_kbps"] = disk_kbps

            result.append(entry)

        return result

    def _disk_kbps(self, proc: psutil.Process) -> Optional[float]:
        """进程级磁盘读写速率；不支持或无权限时返回 None"""
        try:
            io = proc.io_counters()
        except (AttributeError, psutil.Error):
            return None
        return self._io_meter.rate(proc.pid, io.read_bytes + io.write_bytes)
