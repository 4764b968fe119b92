"""
磁盘采集器

采集指定挂载点的使用率，以及整机磁盘读写速率
"""

from typing import List, Optional, Tuple

import psutil

from .base import RateMeter


async def get_disk_used_percent(mount_points: List[str]) -> Optional[float]:
    """
    采集磁盘使用率

    Args:
        mount_points: 挂载点列表（如 ["/", "/data"]）

    Returns:
        各挂载点使用率的平均值；全部失败时返回 None
    """
    values = []
    for mount in mount_points:
        try:
            values.append(psutil.disk_usage(mount).percent)
        except OSError:
            # 单个挂载点失败，跳过
            continue

    if not values:
        return None
    return sum(values) / len(values)


class DiskIOMeter:
    """整机磁盘读写速率（KB/s）"""

    def __init__(self, meter: Optional[RateMeter] = None):
        self._meter = meter or RateMeter()

    async def read(self) -> Tuple[float, float]:
        """
        Returns:
            (read_kbps, write_kbps)，首次调用为 (0, 0)
        """
        counters = psutil.disk_io_counters()
        if counters is None:
            raise RuntimeError("disk I/O counters not available")

        read_kbps = self._meter.rate("read", counters.read_bytes)
        write_kbps = self._meter.rate("write", counters.write_bytes)
        return read_kbps or 0.0, write_kbps or 0.0
