"""
存储模块

后端在启动时按配置选定一次并写入日志，运行期间不会切换。
"""

import logging

from ..config import AgentConfig, StoreConfig
from .base import MetricWriter, Store
from .http import HttpMetricWriter
from .memory import MemoryStore
from .sqlite import SqliteStore

logger = logging.getLogger(__name__)

__all__ = [
    "MetricWriter",
    "Store",
    "HttpMetricWriter",
    "MemoryStore",
    "SqliteStore",
    "create_store",
    "create_writer",
]


def create_store(config: StoreConfig) -> Store:
    """根据配置创建 Store"""
    if config.backend == "sqlite":
        store = SqliteStore(config.path, timeout=config.timeout)
    elif config.backend == "memory":
        store = MemoryStore()
    else:
        raise ValueError(f"Unknown store backend: {config.backend}")

    logger.info(f"Using store backend: {store.describe()}")
    return store


def create_writer(agent: AgentConfig, store: StoreConfig) -> MetricWriter:
    """根据 Agent 配置创建上报端（HTTP 或直接写 Store）"""
    if agent.writer == "http":
        writer = HttpMetricWriter(agent.server_url, token=agent.token, timeout=agent.timeout)
        logger.info(f"Using metric writer: {writer.describe()}")
        return writer
    if agent.writer == "store":
        return create_store(store)
    raise ValueError(f"Unknown agent writer: {agent.writer}")
