"""
单元测试：数据模型

测试覆盖：
- 旧版进程字段映射到 extras
- 时间戳统一为 UTC
- 必填标识校验
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from labmon.models import ProcessSample, Sample


class TestProcessSample:
    """进程采样字段兼容测试"""

    def test_new_style_fields(self):
        """测试：新字段原样保留"""
        proc = ProcessSample(pid=10, name="python", command="python train.py", cpu=12.5, mem=3.0,
                             extras={"disk_kbps": 40.0})

        assert proc.name == "python"
        assert proc.command == "python train.py"
        assert proc.cpu == 12.5
        assert proc.extras == {"disk_kbps": 40.0}

    def test_legacy_cmd_and_mem(self):
        """测试：cmd / memUsage 映射"""
        proc = ProcessSample.model_validate({"pid": 7, "cmd": "node server.js", "cpu": 1.0, "memUsage": 4.5})

        assert proc.command == "node server.js"
        assert proc.mem == 4.5

    def test_legacy_net_kbps(self):
        """测试：netKBps 映射为 extras.net_kbps"""
        proc = ProcessSample.model_validate({"name": "chrome", "netKBps": 12.0})

        assert proc.extras["net_kbps"] == 12.0

    def test_legacy_rx_tx_bytes(self):
        """测试：rx + tx 字节数换算为 KB"""
        proc = ProcessSample.model_validate({"name": "chrome", "rx": 1024, "tx": 1024})

        assert proc.extras["net_kbps"] == 2.0

    def test_legacy_disk_sectors(self):
        """测试：rIO_sec + wIO_sec 按 512 字节扇区换算"""
        proc = ProcessSample.model_validate({"name": "dd", "rIO_sec": 2, "wIO_sec": 2})

        assert proc.extras["disk_kbps"] == 2.0

    def test_legacy_read_write_bytes(self):
        """测试：readBytes + writeBytes 换算为 KB"""
        proc = ProcessSample.model_validate({"name": "dd", "readBytes": 2048, "writeBytes": 0})

        assert proc.extras["disk_kbps"] == 2.0

    def test_no_optional_metrics(self):
        """测试：未上报 net/disk 时 extras 为空"""
        proc = ProcessSample.model_validate({"name": "bash", "cpu": None, "mem": None})

        assert proc.extras == {}
        assert proc.cpu == 0.0
        assert proc.mem == 0.0


class TestSample:
    """Sample 校验测试"""

    def test_naive_timestamp_is_utc(self):
        """测试：无时区时间按 UTC 处理"""
        sample = Sample(pc_id="pc-01", lab_id="lab-1", timestamp=datetime(2026, 1, 20, 10, 0, 0))

        assert sample.timestamp.tzinfo is not None
        assert sample.timestamp == datetime(2026, 1, 20, 10, 0, 0, tzinfo=timezone.utc)

    def test_defaults(self):
        """测试：数值字段默认 0，net_kbps 默认缺失"""
        sample = Sample(pc_id="pc-01", lab_id="lab-1", timestamp=datetime(2026, 1, 20, tzinfo=timezone.utc))

        assert sample.cpu_load_percent == 0.0
        assert sample.net_kbps is None
        assert sample.processes == []

    def test_empty_ids_rejected(self):
        """测试：空标识校验失败"""
        with pytest.raises(ValidationError):
            Sample(pc_id="", lab_id="lab-1", timestamp=datetime(2026, 1, 20, tzinfo=timezone.utc))
