"""
Agent 运行时

启动两个独立计时的并发任务：
1. 采样循环（sample_seconds）：采样 -> 追加到本地缓冲
2. 上报循环（batch_seconds）：缓冲 -> 平均 -> 入库

收到 SIGINT/SIGTERM 后两个循环在下一次等待时退出，随后执行且仅执行一次最终上报。
"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

from ..config import AppConfig
from ..store import MetricWriter, create_writer
from ..utils import acquire_single_instance_lock
from .buffer import LocalBuffer
from .collectors import PsutilProvider
from .flusher import Flusher
from .sampler import Sampler

logger = logging.getLogger(__name__)


async def run_sampler(
    sampler: Sampler,
    buffer: LocalBuffer,
    interval: float,
    stop_event: asyncio.Event
):
    """
    运行采样循环

    单次采样或写缓冲失败只丢失当前这一拍，不影响后续采样。
    """
    logger.info(f"Starting sampler loop (interval={interval}s)")

    while not stop_event.is_set():
        try:
            sample = await sampler.sample()
            buffer.append(sample)
        except OSError as e:
            logger.error(f"Failed to append sample to {buffer.path}: {e}")
        except Exception as e:
            logger.error(f"Sampler loop error: {e}", exc_info=True)

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass

    logger.info("Sampler loop stopped")


class Agent:
    """
    一个 Agent 实例：共享同一个缓冲的 Sampler 与 Flusher

    Args:
        sampler: 采样器
        buffer: 本地缓冲
        flusher: 上报器
        sample_interval: 采样间隔（秒）
    """

    def __init__(
        self,
        sampler: Sampler,
        buffer: LocalBuffer,
        flusher: Flusher,
        sample_interval: float = 1.0
    ):
        self.sampler = sampler
        self.buffer = buffer
        self.flusher = flusher
        self.sample_interval = sample_interval

    async def run(self, stop_event: Optional[asyncio.Event] = None):
        """运行直到 stop_event 被设置（或收到退出信号），退出前做一次最终上报"""
        if stop_event is None:
            stop_event = asyncio.Event()
        self._install_signal_handlers(stop_event)

        try:
            pending = self.buffer.read_all()
        except OSError as e:
            logger.error(f"Failed to read buffer {self.buffer.path} on startup: {e}")
            pending = []
        if pending:
            logger.info(f"Resuming with {len(pending)} buffered sample(s) from previous run")

        try:
            await asyncio.gather(
                run_sampler(self.sampler, self.buffer, self.sample_interval, stop_event),
                self.flusher.run(stop_event),
            )
        finally:
            await self.flusher.final_flush()

    @staticmethod
    def _install_signal_handlers(stop_event: asyncio.Event):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except (NotImplementedError, RuntimeError, ValueError):
                # Windows 或非主线程：依赖 KeyboardInterrupt 取消任务
                pass


def build_agent(config: AppConfig, writer: MetricWriter) -> Agent:
    """根据配置组装 Agent"""
    agent_cfg = config.agent

    buffer = LocalBuffer(agent_cfg.buffer_path)
    provider = PsutilProvider(disks=agent_cfg.disks, top_processes=agent_cfg.top_processes)
    sampler = Sampler(provider, pc_id=agent_cfg.pc_id, lab_id=agent_cfg.lab_id)
    flusher = Flusher(
        buffer,
        writer,
        pc_id=agent_cfg.pc_id,
        lab_id=agent_cfg.lab_id,
        interval=agent_cfg.batch_seconds,
    )
    return Agent(sampler, buffer, flusher, sample_interval=agent_cfg.sample_seconds)


async def run_agent(config: AppConfig):
    """创建资源、运行 Agent、退出时释放资源"""
    buffer_path = Path(config.agent.buffer_path)
    lock_handle = acquire_single_instance_lock(buffer_path.with_name(buffer_path.name + ".lock"))

    writer = create_writer(config.agent, config.store)
    try:
        agent = build_agent(config, writer)
        logger.info(
            f"Agent started for lab={config.agent.lab_id} pc={config.agent.pc_id}, "
            f"buffer={buffer_path}"
        )
        await agent.run()
    finally:
        await writer.aclose()
        lock_handle.close()
