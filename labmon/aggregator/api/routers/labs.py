"""
实验室与机器列表 API
"""

from typing import List

from fastapi import APIRouter, Depends

from ....models import HealthResponse
from ....store import Store
from ...query import QueryAggregator
from ..dependencies import get_query, get_store

router = APIRouter(prefix="/api", tags=["labs"])


@router.get("/health", response_model=HealthResponse)
async def health(store: Store = Depends(get_store)):
    """健康检查"""
    return HealthResponse(ok=True, store=store.describe())


@router.get("/labs", response_model=List[str])
async def list_labs(query: QueryAggregator = Depends(get_query)):
    """所有上报过数据的实验室 ID（排序）"""
    return query.list_labs()


@router.get("/labs/{lab_id}/pcs", response_model=List[str])
async def list_pcs(lab_id: str, query: QueryAggregator = Depends(get_query)):
    """实验室下上报过数据的机器 ID（排序）"""
    return query.list_pcs(lab_id)
