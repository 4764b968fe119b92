"""
内存采集器
"""

import psutil


async def get_mem_used_percent() -> float:
    """已用内存占总内存的百分比"""
    mem = psutil.virtual_memory()
    if not mem.total:
        return 0.0
    return mem.used / mem.total * 100.0
