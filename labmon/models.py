"""
数据模型定义

包括：
- 采样 / 入库记录的固定 schema（Sample、Metric、ProcessSample）
- 查询时派生的分桶、快照与排名响应模型
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .utils import ensure_utc


# 参与平均计算的数值字段（net_kbps 可缺省，单独处理）
NUMERIC_FIELDS = (
    "cpu_load_percent",
    "mem_used_percent",
    "disk_used_percent",
    "net_used_percent",
    "disk_read_kbps",
    "disk_write_kbps",
    "uptime_seconds",
)

# 进程 extras 中约定的可选字段
EXTRA_NET_KBPS = "net_kbps"
EXTRA_DISK_KBPS = "disk_kbps"


def _number(value: Any) -> Optional[float]:
    """仅接受真正的数值（排除 bool）"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _sum_present(data: Dict[str, Any], *keys: str) -> Optional[float]:
    """若任一 key 为数值则返回这些数值之和，否则返回 None"""
    values = [_number(data.get(k)) for k in keys]
    if all(v is None for v in values):
        return None
    return sum(v for v in values if v is not None)


# =============================================================================
# 采样与入库记录
# =============================================================================

class ProcessSample(BaseModel):
    """单个进程的采样"""
    model_config = ConfigDict(frozen=True)

    pid: Optional[int] = None
    name: Optional[str] = None
    command: Optional[str] = None
    cpu: float = 0.0
    mem: float = 0.0
    # 可选的进程级附加指标（net_kbps / disk_kbps），key 是否存在即“是否有采集”
    extras: Dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy_fields(cls, data: Any) -> Any:
        """
        兼容旧版 Agent 上报的松散字段

        把 netKBps / rx+tx / diskKBps / readBytes+writeBytes 等映射进 extras。
        """
        if not isinstance(data, dict):
            return data

        data = dict(data)
        extras = dict(data.get("extras") or {})

        if data.get("command") is None and data.get("cmd"):
            data["command"] = data["cmd"]
        if data.get("mem") is None and _number(data.get("memUsage")) is not None:
            data["mem"] = data["memUsage"]
        for key in ("cpu", "mem"):
            if data.get(key) is None:
                data.pop(key, None)

        if EXTRA_NET_KBPS not in extras:
            if _number(data.get("netKBps")) is not None:
                extras[EXTRA_NET_KBPS] = data["netKBps"]
            elif _number(data.get("netKB")) is not None:
                extras[EXTRA_NET_KBPS] = data["netKB"]
            else:
                total = _sum_present(data, "rx", "tx")
                if total is None:
                    total = _sum_present(data, "rxBytes", "txBytes")
                if total is not None:
                    extras[EXTRA_NET_KBPS] = total / 1024

        if EXTRA_DISK_KBPS not in extras:
            if _number(data.get("diskKBps")) is not None:
                extras[EXTRA_DISK_KBPS] = data["diskKBps"]
            elif _number(data.get("io")) is not None:
                extras[EXTRA_DISK_KBPS] = data["io"]
            else:
                total = _sum_present(data, "readBytes", "writeBytes")
                if total is not None:
                    extras[EXTRA_DISK_KBPS] = total / 1024
                else:
                    sectors = _sum_present(data, "rIO_sec", "wIO_sec")
                    if sectors is not None:
                        extras[EXTRA_DISK_KBPS] = sectors * 512 / 1024

        data["extras"] = extras
        return data


class Sample(BaseModel):
    """一次瞬时采样（Agent 本地缓冲中的一行）"""
    model_config = ConfigDict(frozen=True)

    pc_id: str = Field(..., min_length=1, description="机器 ID")
    lab_id: str = Field(..., min_length=1, description="实验室 ID")
    timestamp: datetime = Field(..., description="采样时间（UTC）")
    cpu_load_percent: float = 0.0
    mem_used_percent: float = 0.0
    disk_used_percent: float = 0.0
    net_used_percent: float = 0.0
    net_kbps: Optional[float] = None
    disk_read_kbps: float = 0.0
    disk_write_kbps: float = 0.0
    uptime_seconds: float = 0.0
    processes: List[ProcessSample] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class Metric(Sample):
    """入库记录：原始透传（sample_count=1）或 Flusher 平均结果"""
    id: Optional[str] = None
    sample_count: int = Field(1, ge=1, description="被平均的采样条数")


# =============================================================================
# 查询响应模型
# =============================================================================

class PcAverage(BaseModel):
    """单机平均快照"""
    pc_id: str
    lab_id: str
    count: int
    timestamp: datetime
    cpu_load_percent: float
    mem_used_percent: float
    disk_used_percent: float
    net_used_percent: float
    net_kbps: float
    disk_read_kbps: float
    disk_write_kbps: float
    uptime_seconds: float


class Bucket(BaseModel):
    """实验室时间桶（查询时派生，不入库）"""
    timestamp: datetime
    bucket_ms: int
    count: int
    cpu_load_percent: float
    mem_used_percent: float
    disk_used_percent: float
    net_used_percent: float
    net_kbps: float
    disk_read_kbps: float
    disk_write_kbps: float


class ProcessRank(BaseModel):
    """进程排名项"""
    name: str
    avg_cpu: float
    avg_mem: float
    avg_net_kbps: float
    avg_disk_kbps: float
    samples: int


class MachineRank(BaseModel):
    """机器排名项"""
    pc_id: str
    avg_cpu_load_percent: float
    avg_mem_used_percent: float
    avg_disk_used_percent: float
    avg_net_kbps: float
    samples: int


class ProcessRankings(BaseModel):
    top_by_cpu: List[ProcessRank] = Field(default_factory=list)
    top_by_mem: List[ProcessRank] = Field(default_factory=list)
    top_by_net: List[ProcessRank] = Field(default_factory=list)
    top_by_disk: List[ProcessRank] = Field(default_factory=list)


class LabAverage(BaseModel):
    """实验室平均快照 + 排名"""
    lab_id: str
    count: int
    timestamp: datetime
    cpu_load_percent: float
    mem_used_percent: float
    disk_used_percent: float
    net_used_percent: float
    net_kbps: float
    disk_read_kbps: float
    disk_write_kbps: float
    uptime_seconds: float
    processes: ProcessRankings = Field(default_factory=ProcessRankings)
    top_pcs_by_disk: List[MachineRank] = Field(default_factory=list)
    top_pcs_by_net: List[MachineRank] = Field(default_factory=list)
    top_pcs_by_cpu: List[MachineRank] = Field(default_factory=list)
    top_pcs_by_mem: List[MachineRank] = Field(default_factory=list)


class IngestResponse(BaseModel):
    """POST /api/metrics 响应"""
    id: str


class HealthResponse(BaseModel):
    """健康检查响应"""
    ok: bool
    store: str
