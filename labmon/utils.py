"""
工具函数模块

日志配置、单实例文件锁、UTC 时间换算
"""

import logging
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import LoggingConfig

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def utc_now() -> datetime:
    """当前 UTC 时间（带时区）"""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """无时区的时间按 UTC 处理，有时区的统一转换到 UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    """datetime -> 毫秒时间戳（整数运算，避免浮点误差）"""
    return (ensure_utc(value) - EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(ms: int) -> datetime:
    """毫秒时间戳 -> UTC datetime"""
    return EPOCH + timedelta(milliseconds=ms)


def truncate_to_ms(value: datetime) -> datetime:
    """截断到毫秒精度（存储层统一的时间精度）"""
    return from_epoch_ms(to_epoch_ms(value))


def setup_logging(config: "LoggingConfig"):
    """配置日志"""
    level = getattr(logging, config.level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # 如果配置了文件日志
    if config.file:
        log_path = Path(config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)

    # 降低第三方库日志级别
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def acquire_single_instance_lock(lock_path: Path):
    """
    防止同一个缓冲文件被多个 Agent 进程同时使用（会导致重复上报/互相截断）。

    通过文件锁实现：同一路径只能有一个进程持锁。返回的句柄需保持打开直到退出。
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    # 二进制模式 + 固定锁定首字节，避免 Windows 上锁到不同区域
    handle = open(lock_path, "a+b")
    handle.seek(0)

    try:
        if os.name == "nt":
            import msvcrt  # type: ignore

            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        else:
            import fcntl  # type: ignore

            fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError as e:
        handle.close()
        raise RuntimeError(f"Another agent already owns this buffer (lock: {lock_path})") from e

    try:
        handle.seek(0)
        handle.truncate()
        handle.write(str(os.getpid()).encode("utf-8"))
        handle.flush()
    except OSError:
        # 写 PID 失败不影响锁语义
        pass

    return handle
