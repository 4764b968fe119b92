"""
单元测试：配置加载

测试覆盖：
- 默认值
- YAML 文件加载与相对路径解析
- 环境变量覆盖
- 错误配置
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from labmon.config import AppConfig, get_config, load_config, reset_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """隔离环境变量与工作目录"""
    monkeypatch.delenv("LABMON_CONFIG", raising=False)
    monkeypatch.delenv("LABMON_AGENT__LAB_ID", raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


def write_config(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    """配置加载测试"""

    def test_defaults_without_file(self):
        """测试：没有配置文件时使用默认值"""
        config = load_config()

        assert config.agent.lab_id == "lab-1"
        assert config.agent.sample_seconds == 1.0
        assert config.agent.batch_seconds == 10.0
        assert config.agent.pc_id
        assert config.store.backend == "sqlite"
        assert config.query.bucket_ms == 10000
        assert config.query.lab_avg_max == 5000

    def test_yaml_file(self, tmp_path):
        """测试：从 YAML 加载，相对路径以配置文件目录为基准"""
        config_dir = tmp_path / "etc"
        config_dir.mkdir()
        path = write_config(config_dir / "labmon.yaml", """
agent:
  pc_id: pc-07
  lab_id: lab-3
  buffer_path: buf/metrics.jsonl
store:
  backend: memory
  path: /var/lib/labmon.db
""")

        config = load_config(str(path))

        assert config.agent.pc_id == "pc-07"
        assert config.agent.lab_id == "lab-3"
        assert Path(config.agent.buffer_path) == (config_dir / "buf" / "metrics.jsonl").resolve()
        assert config.store.backend == "memory"
        assert config.store.path == "/var/lib/labmon.db"

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """测试：环境变量优先于文件"""
        path = write_config(tmp_path / "config.yaml", "agent:\n  lab_id: lab-3\n  pc_id: pc-07\n")
        monkeypatch.setenv("LABMON_AGENT__LAB_ID", "lab-9")

        config = load_config(str(path))

        assert config.agent.lab_id == "lab-9"
        assert config.agent.pc_id == "pc-07"

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        """测试：LABMON_CONFIG 指定路径"""
        path = write_config(tmp_path / "custom.yaml", "api:\n  port: 9000\n")
        monkeypatch.setenv("LABMON_CONFIG", str(path))

        assert load_config().api.port == 9000

    def test_explicit_missing_file(self, tmp_path):
        """测试：显式指定的文件不存在时报错"""
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_non_mapping_rejected(self, tmp_path):
        """测试：文件内容不是映射时报错"""
        path = write_config(tmp_path / "config.yaml", "- a\n- b\n")

        with pytest.raises(ValueError):
            load_config(str(path))

    def test_invalid_value_rejected(self, tmp_path):
        """测试：非法取值校验失败"""
        path = write_config(tmp_path / "config.yaml", "agent:\n  sample_seconds: 0\n")

        with pytest.raises(ValidationError):
            load_config(str(path))

    def test_unknown_backend_rejected(self, tmp_path):
        """测试：未知存储后端校验失败"""
        path = write_config(tmp_path / "config.yaml", "store:\n  backend: mongo\n")

        with pytest.raises(ValidationError):
            load_config(str(path))

    def test_get_config_singleton(self):
        """测试：全局配置只加载一次"""
        assert get_config() is get_config()
        assert isinstance(get_config(), AppConfig)
