"""
HTTP 写入端

Agent 通过中心服务的 POST /api/metrics 上报一条 Metric。
"""

from typing import Optional

import httpx

from ..models import Metric
from .base import MetricWriter


class HttpMetricWriter(MetricWriter):
    """
    通过 HTTP 把 Metric 写入中心服务

    Args:
        server_url: 中心服务地址（如 http://10.0.0.1:8080）
        token: Bearer Token（可选）
        timeout: 超时时间（秒）
        transport: 自定义 httpx 传输层（测试用）
    """

    def __init__(
        self,
        server_url: str,
        token: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=self.server_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def describe(self) -> str:
        return f"http ({self.server_url})"

    async def write(self, metric: Metric) -> str:
        """
        上报一条 Metric

        Raises:
            httpx.HTTPError: 网络错误或非 2xx 响应
        """
        response = await self._client.post(
            "/api/metrics",
            content=metric.model_dump_json(exclude={"id"}),
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        return str(response.json()["id"])

    async def aclose(self):
        await self._client.aclose()
