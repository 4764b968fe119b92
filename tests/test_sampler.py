"""
单元测试：采样器与速率计数

测试覆盖：
- 正常读数组装为 Sample
- 采集失败 / 缺失 / 非有限值一律补 0，不抛异常
- 非法进程条目被丢弃
- RateMeter 首次读数、计数器重置
"""

import asyncio
import math

import pytest

from labmon.agent.collectors import RateMeter
from labmon.agent.sampler import Sampler

from conftest import BASE_TIME, StaticProvider


class BrokenProvider(StaticProvider):
    """CPU 抛异常、内存返回非 dict 的提供者"""

    async def cpu(self):
        raise OSError("/proc/stat unreadable")

    async def memory(self):
        return None

    async def processes(self):
        raise PermissionError("access denied")


def take_sample(provider):
    sampler = Sampler(provider, pc_id="pc-01", lab_id="lab-1", clock=lambda: BASE_TIME)
    return asyncio.run(sampler.sample())


class TestSampler:
    """Sampler 测试"""

    def test_normal_readings(self):
        """测试：所有读数正常"""
        sample = take_sample(StaticProvider())

        assert sample.pc_id == "pc-01"
        assert sample.lab_id == "lab-1"
        assert sample.timestamp == BASE_TIME
        assert sample.cpu_load_percent == 25.0
        assert sample.disk_write_kbps == 20.0
        assert sample.net_kbps == 300.0
        assert sample.uptime_seconds == 3600.0
        assert [p.name for p in sample.processes] == ["python"]

    def test_failed_collectors_become_zero(self):
        """测试：采集异常或返回值非法时补 0"""
        sample = take_sample(BrokenProvider())

        assert sample.cpu_load_percent == 0.0
        assert sample.mem_used_percent == 0.0
        assert sample.processes == []
        # 其它采集器不受影响
        assert sample.disk_used_percent == 70.0

    def test_missing_and_non_finite_values(self):
        """测试：缺失字段与 NaN/inf 补 0"""
        provider = StaticProvider(disk_used_percent=math.nan, net_used_percent=math.inf)
        del provider.readings["disk_read_kbps"]

        sample = take_sample(provider)

        assert sample.disk_used_percent == 0.0
        assert sample.net_used_percent == 0.0
        assert sample.disk_read_kbps == 0.0
        assert sample.disk_write_kbps == 20.0

    def test_invalid_process_entries_dropped(self):
        """测试：单条非法进程条目丢弃，其余保留"""
        provider = StaticProvider(processes=[
            {"pid": "not-a-pid", "name": "bad"},
            {"pid": 2, "name": "ok", "cpu": 1.0},
            "garbage",
        ])

        sample = take_sample(provider)

        assert [p.name for p in sample.processes] == ["ok"]


class TestRateMeter:
    """RateMeter 测试"""

    def test_first_reading_has_no_rate(self):
        """测试：首次读数没有基准"""
        meter = RateMeter(clock=lambda: 0.0)

        assert meter.rate("eth0", 1000) is None

    def test_rate_kbps(self):
        """测试：按时间差计算 KB/s"""
        now = [0.0]
        meter = RateMeter(clock=lambda: now[0])
        meter.rate("eth0", 0)

        now[0] = 2.0
        assert meter.rate("eth0", 4096) == pytest.approx(2.0)

    def test_counter_reset(self):
        """测试：计数器回绕时返回 0"""
        now = [0.0]
        meter = RateMeter(clock=lambda: now[0])
        meter.rate("eth0", 10000)

        now[0] = 1.0
        assert meter.rate("eth0", 10) == 0.0

    def test_forget_except(self):
        """测试：丢弃已消失的 key"""
        meter = RateMeter(clock=lambda: 0.0)
        meter.rate(1, 100)
        meter.rate(2, 100)

        meter.forget_except([2])

        assert meter.rate(1, 200) is None
