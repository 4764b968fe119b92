"""
采集器基类

定义 Sampler 依赖的指标提供者接口，以及计算 KB/s 速率的计数器。
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple


class MetricsProvider(ABC):
    """
    指标提供者

    每个方法返回一组读数；任何方法都可能抛出异常或缺少字段，
    由 Sampler 负责补 0 并记录日志。
    """

    @abstractmethod
    async def cpu(self) -> Dict[str, float]:
        """{"cpu_load_percent": ...}"""

    @abstractmethod
    async def memory(self) -> Dict[str, float]:
        """{"mem_used_percent": ...}"""

    @abstractmethod
    async def disk(self) -> Dict[str, float]:
        """{"disk_used_percent": ..., "disk_read_kbps": ..., "disk_write_kbps": ...}"""

    @abstractmethod
    async def network(self) -> Dict[str, float]:
        """{"net_kbps": ..., "net_used_percent": ...}"""

    @abstractmethod
    async def uptime(self) -> Dict[str, float]:
        """{"uptime_seconds": ...}"""

    @abstractmethod
    async def processes(self) -> List[Dict[str, Any]]:
        """进程列表，元素字段见 ProcessSample"""


class RateMeter:
    """
    累计字节计数 -> KB/s

    按 key 保存上一次的 (时间, 字节数)；首次读数没有基准，返回 None。
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._last: Dict[Hashable, Tuple[float, float]] = {}

    def rate(self, key: Hashable, total_bytes: float) -> Optional[float]:
        now = self._clock()
        last = self._last.get(key)
        self._last[key] = (now, total_bytes)
        if last is None:
            return None

        last_ts, last_bytes = last
        elapsed = now - last_ts
        # 计数器回绕或重置时按 0 处理
        if elapsed <= 0 or total_bytes < last_bytes:
            return 0.0
        return (total_bytes - last_bytes) / 1024 / elapsed

    def forget_except(self, keys):
        """丢弃已消失的 key（如已退出的进程）"""
        keep = set(keys)
        for key in list(self._last):
            if key not in keep:
                del self._last[key]
