"""
FastAPI 应用配置

配置 CORS、路由注册，并把 Store 与配置挂到 app.state 上。
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ... import __version__
from ...config import AppConfig, get_config
from ...store import Store, create_store
from .routers import labs, metrics

logger = logging.getLogger(__name__)


def create_app(config: Optional[AppConfig] = None, store: Optional[Store] = None) -> FastAPI:
    """
    创建 FastAPI 应用实例

    Args:
        config: 应用配置，默认使用全局配置
        store: 数据存储，默认按 config.store 创建；应用关闭时负责关闭它
    """
    if config is None:
        config = get_config()
    if store is None:
        store = create_store(config.store)

    app = FastAPI(
        title="Lab Monitor",
        description="实验室机器监控数据上报与查询服务",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )
    app.state.config = config
    app.state.store = store

    # CORS 中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册路由
    app.include_router(labs.router)
    app.include_router(metrics.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"Lab Monitor API starting up (store: {store.describe()})")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Lab Monitor API shutting down...")
        store.close()

    return app
