"""
网络采集器

计算整机收发吞吐（KB/s）及相对网卡带宽的使用率
"""

from typing import Optional, Tuple

import psutil

from .base import RateMeter

# 无法获取网卡速率时按 1 Gbps 估算
DEFAULT_CAPACITY_KBPS = 125000.0


def get_link_capacity_kbps() -> float:
    """最快的已启用网卡速率（Mbps * 125 = KB/s）"""
    speeds = [
        stats.speed * 125.0
        for stats in psutil.net_if_stats().values()
        if stats.isup and stats.speed
    ]
    return max(speeds) if speeds else DEFAULT_CAPACITY_KBPS


class NetworkMeter:
    """整机网络吞吐"""

    def __init__(self, meter: Optional[RateMeter] = None):
        self._meter = meter or RateMeter()

    async def read(self) -> Tuple[float, float]:
        """
        Returns:
            (net_kbps, net_used_percent)，首次调用为 (0, 0)
        """
        counters = psutil.net_io_counters()
        if counters is None:
            raise RuntimeError("network I/O counters not available")

        kbps = self._meter.rate("total", counters.bytes_sent + counters.bytes_recv) or 0.0

        try:
            capacity = get_link_capacity_kbps()
        except OSError:
            capacity = DEFAULT_CAPACITY_KBPS

        used_pct = kbps / capacity * 100.0 if capacity else 0.0
        return kbps, used_pct
