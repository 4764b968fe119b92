"""
Lab Monitor Agent 主程序入口

使用方式:
    python -m labmon.agent
    或
    labmon-agent
"""

import asyncio
import logging
import sys

from ..config import get_config
from ..utils import setup_logging
from .app import run_agent


def main():
    """主程序入口"""
    try:
        config = get_config()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.logging)
    logger = logging.getLogger("labmon.agent")
    logger.info("=" * 60)
    logger.info("Lab Monitor Agent")
    logger.info("=" * 60)
    logger.info(f"Lab ID: {config.agent.lab_id}, PC ID: {config.agent.pc_id}")
    logger.info(
        f"Sampling every {config.agent.sample_seconds}s, "
        f"flushing every {config.agent.batch_seconds}s"
    )

    try:
        asyncio.run(run_agent(config))
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
    except RuntimeError as e:
        # 例如缓冲文件已被其它 Agent 占用
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
