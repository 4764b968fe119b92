"""
存储抽象

MetricWriter 只负责写入一条记录（Agent 侧需要的全部能力），写入是协程，
不会阻塞 Agent 的事件循环；Store 在此基础上提供同步的写入与 Dashboard 查询接口。
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ..models import Metric


class MetricWriter(ABC):
    """单条 Metric 写入端"""

    @abstractmethod
    async def write(self, metric: Metric) -> str:
        """
        写入一条 Metric

        Returns:
            存储分配的记录 ID

        Raises:
            Exception: 写入失败时抛出，由调用方决定是否重试
        """

    def describe(self) -> str:
        """用于日志的后端描述"""
        return type(self).__name__

    def close(self):
        """释放连接等资源"""

    async def aclose(self):
        """在事件循环中释放资源"""
        self.close()


class Store(MetricWriter):
    """持久化记录后端（写入 + 查询）"""

    @abstractmethod
    def insert(self, metric: Metric) -> str:
        """同步写入一条 Metric，返回记录 ID"""

    async def write(self, metric: Metric) -> str:
        # 在线程池中执行，避免阻塞事件循环
        return await asyncio.to_thread(self.insert, metric)

    @abstractmethod
    def find(
        self,
        pc_id: Optional[str] = None,
        lab_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[Metric]:
        """按 pc_id / lab_id 等值过滤，按时间（毫秒）倒序、同一毫秒内后写入的在前，返回最多 limit 条"""

    @abstractmethod
    def distinct_pc_ids(self, lab_id: Optional[str] = None) -> List[str]:
        """机器 ID 去重列表（升序），可按实验室过滤"""

    @abstractmethod
    def distinct_lab_ids(self) -> List[str]:
        """实验室 ID 去重列表（升序）"""

    @abstractmethod
    def delete_before(self, cutoff: datetime) -> int:
        """删除早于 cutoff（按毫秒比较）的记录，返回删除条数"""
