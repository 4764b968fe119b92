"""
依赖注入模块

提供 FastAPI 依赖项。Store 与查询配置挂在 app.state 上，由 create_app 注入。
"""

from typing import Optional

from fastapi import Header, HTTPException, Request, status

from ...store import Store
from ..query import QueryAggregator


async def get_store(request: Request) -> Store:
    """获取 Store 实例"""
    return request.app.state.store


async def get_query(request: Request) -> QueryAggregator:
    """获取查询引擎（无状态，每个请求新建）"""
    return QueryAggregator(request.app.state.store, request.app.state.config.query)


async def verify_ingest_token(request: Request, authorization: Optional[str] = Header(None)):
    """
    验证上报 Token

    api.ingest_token 未配置时不校验（开发环境）。
    """
    expected_token = request.app.state.config.api.ingest_token
    if not expected_token:
        return

    if authorization != f"Bearer {expected_token}":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid ingest token"
        )


def require(value: Optional[str], name: str) -> str:
    """缺少必填标识时返回 400"""
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{name} required"
        )
    return value
