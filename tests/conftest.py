"""
测试公共夹具
"""

from datetime import datetime, timedelta, timezone

import pytest

from labmon.agent.collectors import MetricsProvider
from labmon.models import Metric, Sample
from labmon.store import MemoryStore, SqliteStore

BASE_TIME = datetime(2026, 1, 20, 10, 0, 0, tzinfo=timezone.utc)


def make_sample(offset_seconds: float = 0, pc_id: str = "pc-01", lab_id: str = "lab-1", **fields) -> Sample:
    """构造一条 Sample，时间为 BASE_TIME + offset_seconds"""
    return Sample(
        pc_id=pc_id,
        lab_id=lab_id,
        timestamp=BASE_TIME + timedelta(seconds=offset_seconds),
        **fields
    )


def make_metric(offset_seconds: float = 0, pc_id: str = "pc-01", lab_id: str = "lab-1", **fields) -> Metric:
    """构造一条 Metric，时间为 BASE_TIME + offset_seconds"""
    return Metric(
        pc_id=pc_id,
        lab_id=lab_id,
        timestamp=BASE_TIME + timedelta(seconds=offset_seconds),
        **fields
    )


@pytest.fixture
def memory_store():
    """内存存储"""
    store = MemoryStore()
    yield store
    store.close()


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_path):
    """两种存储后端各跑一遍"""
    if request.param == "sqlite":
        backend = SqliteStore(str(tmp_path / "test_labmon.db"))
    else:
        backend = MemoryStore()
    yield backend
    backend.close()


class StaticProvider(MetricsProvider):
    """返回固定读数的指标提供者"""

    def __init__(self, processes=None, **overrides):
        self.readings = {
            "cpu_load_percent": 25.0,
            "mem_used_percent": 50.0,
            "disk_used_percent": 70.0,
            "disk_read_kbps": 10.0,
            "disk_write_kbps": 20.0,
            "net_kbps": 300.0,
            "net_used_percent": 0.24,
            "uptime_seconds": 3600.0,
        }
        self.readings.update(overrides)
        self.process_list = processes if processes is not None else [
            {"pid": 1, "name": "python", "cpu": 12.0, "mem": 3.0},
        ]

    def _pick(self, *keys):
        return {k: self.readings[k] for k in keys if k in self.readings}

    async def cpu(self):
        return self._pick("cpu_load_percent")

    async def memory(self):
        return self._pick("mem_used_percent")

    async def disk(self):
        return self._pick("disk_used_percent", "disk_read_kbps", "disk_write_kbps")

    async def network(self):
        return self._pick("net_kbps", "net_used_percent")

    async def uptime(self):
        return self._pick("uptime_seconds")

    async def processes(self):
        return self.process_list
