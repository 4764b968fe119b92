"""
指标查询与上报 API

查询：
- /api/series      单机原始序列
- /api/avg/pc      单机平均快照
- /api/lab/series  实验室 10s 分桶序列
- /api/avg/lab     实验室平均快照 + 排名

上报：
- POST /api/metrics  Agent（HTTP 方式）写入一条 Metric
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ....models import Bucket, IngestResponse, LabAverage, Metric, PcAverage
from ....store import Store
from ...query import QueryAggregator
from ..dependencies import get_query, get_store, require, verify_ingest_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["metrics"])


@router.get("/series", response_model=List[Metric])
async def get_series(
    pc_id: Optional[str] = Query(None, description="机器 ID"),
    lab_id: Optional[str] = Query(None, description="实验室 ID"),
    limit: Optional[int] = Query(None, description="条数（默认 100，上限 1000）"),
    query: QueryAggregator = Depends(get_query)
):
    """单机最近 N 条记录，按时间升序"""
    return query.pc_series(require(pc_id, "pc_id"), require(lab_id, "lab_id"), limit)


@router.get("/avg/pc", response_model=Optional[PcAverage])
async def get_pc_average(
    pc_id: Optional[str] = Query(None, description="机器 ID"),
    lab_id: Optional[str] = Query(None, description="实验室 ID"),
    limit: Optional[int] = Query(None, description="条数（默认 50，上限 1000）"),
    query: QueryAggregator = Depends(get_query)
):
    """单机平均快照；没有数据时返回 null"""
    return query.pc_average(require(pc_id, "pc_id"), require(lab_id, "lab_id"), limit)


@router.get("/lab/series", response_model=List[Bucket])
async def get_lab_series(
    lab_id: Optional[str] = Query(None, description="实验室 ID"),
    limit: Optional[int] = Query(None, description="条数（默认 100，上限 1000）"),
    query: QueryAggregator = Depends(get_query)
):
    """实验室 10s 分桶序列，按桶起点升序"""
    return query.lab_series(require(lab_id, "lab_id"), limit)


@router.get("/avg/lab", response_model=Optional[LabAverage])
async def get_lab_average(
    lab_id: Optional[str] = Query(None, description="实验室 ID"),
    limit: Optional[int] = Query(None, description="条数（默认 100，上限 5000）"),
    query: QueryAggregator = Depends(get_query)
):
    """实验室平均快照 + 进程/机器 Top-3；没有数据时返回 null"""
    return query.lab_average(require(lab_id, "lab_id"), limit)


@router.post(
    "/metrics",
    response_model=IngestResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_ingest_token)]
)
async def ingest_metric(metric: Metric, store: Store = Depends(get_store)):
    """写入一条 Metric（id 由服务端分配）"""
    metric_id = await store.write(metric.model_copy(update={"id": None}))
    logger.debug(
        f"Ingested metric {metric_id} from {metric.lab_id}/{metric.pc_id} "
        f"({metric.sample_count} sample(s))"
    )
    return IngestResponse(id=metric_id)
