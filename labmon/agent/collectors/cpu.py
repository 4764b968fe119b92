"""
CPU 采集器

通过 psutil 计算整机 CPU 使用率
"""

import asyncio

import psutil


async def get_cpu_percent(retry_delay: float = 0.25) -> float:
    """
    采集 CPU 使用率

    psutil.cpu_percent(interval=None) 返回距上次调用的使用率，
    首次调用没有基准会得到 0，此时等待 retry_delay 秒再取一次。

    Returns:
        0~100 的浮点数
    """
    value = psutil.cpu_percent(interval=None)
    if not value:
        await asyncio.sleep(retry_delay)
        value = psutil.cpu_percent(interval=None)
    return float(value or 0.0)
