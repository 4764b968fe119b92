"""
配置加载模块

从 config.yaml 加载配置，支持 Pydantic 验证和环境变量覆盖
（LABMON_<SECTION>__<FIELD>，例如 LABMON_AGENT__LAB_ID=lab-2）。
"""

import os
import socket
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = "config.yaml"


class AgentConfig(BaseModel):
    """Agent 配置"""
    pc_id: str = Field(default_factory=socket.gethostname, description="机器 ID，默认主机名")
    lab_id: str = Field(default="lab-1", description="实验室 ID")
    sample_seconds: float = Field(default=1.0, gt=0, description="采样间隔（秒）")
    batch_seconds: float = Field(default=10.0, gt=0, description="批量上报间隔（秒）")
    buffer_path: str = Field(default="metrics_buffer.jsonl", description="本地缓冲文件")
    disks: List[str] = Field(default=["/"], description="统计使用率的挂载点")
    top_processes: int = Field(default=5, ge=0, description="每次采样保留的进程数")
    writer: Literal["http", "store"] = Field(default="http", description="上报方式: http|store")
    server_url: str = Field(default="http://127.0.0.1:8080", description="中心服务地址")
    token: Optional[str] = Field(default=None, description="上报 Bearer Token")
    timeout: float = Field(default=5.0, gt=0, description="上报超时（秒）")


class StoreConfig(BaseModel):
    """存储配置"""
    backend: Literal["sqlite", "memory"] = "sqlite"
    path: str = "data/labmon.db"
    timeout: int = 30


class APIConfig(BaseModel):
    """API 服务配置"""
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: List[str] = ["http://localhost:8080", "http://127.0.0.1:8080"]
    ingest_token: Optional[str] = None


class QueryConfig(BaseModel):
    """查询默认条数与上限（上限用于限制单次查询成本）"""
    series_limit: int = 100
    series_max: int = 1000
    pc_avg_limit: int = 50
    pc_avg_max: int = 1000
    lab_series_limit: int = 100
    lab_series_max: int = 1000
    lab_avg_limit: int = 100
    lab_avg_max: int = 5000
    bucket_ms: int = Field(default=10000, gt=0)


class RetentionConfig(BaseModel):
    """数据保留策略"""
    days: int = 30
    cleanup_hour: int = Field(default=3, ge=0, le=23)


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None


class AppConfig(BaseSettings):
    """应用配置（完整配置）"""
    model_config = SettingsConfigDict(
        env_prefix="LABMON_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    agent: AgentConfig = Field(default_factory=AgentConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # 环境变量优先于 YAML 文件内容
        return env_settings, init_settings


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 参数指定的路径（不存在则报错）
    2. 环境变量 LABMON_CONFIG
    3. 默认路径 config.yaml（不存在时使用默认配置）
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = os.environ.get("LABMON_CONFIG", DEFAULT_CONFIG_PATH)
        explicit = "LABMON_CONFIG" in os.environ

    config_file = Path(config_path)
    if not config_file.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return AppConfig()

    with open(config_file, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f) or {}

    if not isinstance(raw_config, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    # 文件中的相对路径以配置文件所在目录为基准，避免依赖启动时的 CWD
    base_dir = config_file.resolve().parent

    def _resolve(section: str, key: str):
        values = raw_config.get(section)
        if not isinstance(values, dict) or not values.get(key):
            return
        path = Path(values[key])
        if not path.is_absolute():
            values[key] = str((base_dir / path).resolve())

    _resolve("agent", "buffer_path")
    _resolve("store", "path")
    _resolve("logging", "file")

    return AppConfig(**raw_config)


# 全局配置实例（延迟加载，仅供 CLI 入口使用）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
