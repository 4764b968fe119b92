"""
主程序入口

启动两个并发任务：
1. REST API 服务（查询 + HTTP 上报）
2. 每日数据清理任务
"""

import asyncio
import logging
import sys
from datetime import datetime, timedelta

import uvicorn

from .. import __version__
from ..config import AppConfig, RetentionConfig, get_config
from ..store import Store, create_store
from ..utils import setup_logging, utc_now

logger = logging.getLogger(__name__)


def next_cleanup_time(now: datetime, cleanup_hour: int) -> datetime:
    """下一次清理时刻（UTC）：今天的清理时间已过则顺延到明天"""
    target = now.replace(hour=cleanup_hour, minute=0, second=0, microsecond=0)
    if now >= target:
        target += timedelta(days=1)
    return target


def cleanup_once(store: Store, retention_days: int, now: datetime) -> int:
    """删除 retention_days 天之前的记录，返回删除条数"""
    cutoff = now - timedelta(days=retention_days)
    removed = store.delete_before(cutoff)
    logger.info(f"Cleanup completed: removed {removed} metric(s) older than {cutoff.isoformat()}")
    return removed


async def run_cleanup(store: Store, retention: RetentionConfig):
    """
    运行数据清理任务

    每天在指定时间清理过期数据。
    """
    logger.info(f"Starting cleanup task (hour={retention.cleanup_hour}, retention={retention.days}d)")

    while True:
        try:
            now = utc_now()
            next_cleanup = next_cleanup_time(now, retention.cleanup_hour)
            wait_seconds = (next_cleanup - now).total_seconds()
            logger.info(f"Next cleanup at {next_cleanup.isoformat()} (in {wait_seconds:.0f}s)")

            await asyncio.sleep(wait_seconds)

            cleanup_once(store, retention.days, utc_now())

        except asyncio.CancelledError:
            logger.info("Cleanup task cancelled")
            raise
        except Exception as e:
            logger.error(f"Cleanup error: {e}", exc_info=True)
            await asyncio.sleep(3600)  # 出错后等 1 小时


async def run_api_server(config: AppConfig, store: Store):
    """运行 API 服务器"""
    from .api.app import create_app

    app = create_app(config, store)

    server_config = uvicorn.Config(
        app=app,
        host=config.api.host,
        port=config.api.port,
        log_level="info",
        access_log=False  # 我们用自己的日志
    )
    server = uvicorn.Server(server_config)
    await server.serve()


async def main(config: AppConfig):
    """主函数：启动所有任务"""
    logger.info("=" * 60)
    logger.info(f"Lab Monitor Server v{__version__}")
    logger.info("=" * 60)
    logger.info(f"Config loaded: API={config.api.host}:{config.api.port}")

    store = create_store(config.store)

    cleanup_task = asyncio.create_task(run_cleanup(store, config.retention))
    try:
        # API 服务退出（Ctrl+C / SIGTERM）即整体退出
        await run_api_server(config, store)
    except asyncio.CancelledError:
        logger.info("Tasks cancelled, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        raise
    finally:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
        store.close()


def cli():
    """命令行入口"""
    try:
        config = get_config()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.logging)

    try:
        asyncio.run(main(config))
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
        sys.exit(0)


if __name__ == "__main__":
    cli()
