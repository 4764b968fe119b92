"""
单元测试：本地缓冲

测试覆盖：
- 追加顺序读回
- 崩溃留下的半行被跳过，且不影响之后追加的记录
- 合法 JSON 但不符合 schema 的行被跳过
- 清空
- 按读取时的字节数删除已上报的前缀
"""

from labmon.agent.buffer import LocalBuffer

from conftest import make_sample


class TestLocalBuffer:
    """LocalBuffer 测试"""

    def test_missing_file_is_empty(self, tmp_path):
        """测试：文件不存在视为空"""
        buffer = LocalBuffer(tmp_path / "buffer.jsonl")

        assert buffer.read_all() == []
        assert buffer.size() == 0

    def test_append_order(self, tmp_path):
        """测试：按追加顺序读回"""
        buffer = LocalBuffer(tmp_path / "buffer.jsonl")
        for i in range(5):
            buffer.append(make_sample(i, cpu_load_percent=float(i)))

        samples = buffer.read_all()
        assert [s.cpu_load_percent for s in samples] == [0.0, 1.0, 2.0, 3.0, 4.0]

    def test_one_line_per_record(self, tmp_path):
        """测试：每条记录一行，以换行结尾"""
        path = tmp_path / "buffer.jsonl"
        buffer = LocalBuffer(path)
        buffer.append(make_sample(0))
        buffer.append(make_sample(1))

        raw = path.read_bytes()
        assert raw.endswith(b"\n")
        assert raw.count(b"\n") == 2

    def test_partial_trailing_record(self, tmp_path):
        """测试：末尾半行被跳过，之后追加的记录仍可读"""
        path = tmp_path / "buffer.jsonl"
        buffer = LocalBuffer(path)
        buffer.append(make_sample(0, cpu_load_percent=10.0))
        with open(path, "ab") as f:
            f.write(b'{"pc_id": "pc-01", "lab_id": "la')

        assert len(buffer.read_all()) == 1

        buffer.append(make_sample(1, cpu_load_percent=20.0))
        samples = buffer.read_all()
        assert [s.cpu_load_percent for s in samples] == [10.0, 20.0]

    def test_schema_invalid_line_skipped(self, tmp_path):
        """测试：合法 JSON 但缺少必填字段的行被跳过"""
        path = tmp_path / "buffer.jsonl"
        buffer = LocalBuffer(path)
        buffer.append(make_sample(0))
        with open(path, "ab") as f:
            f.write(b'{"foo": 1}\n\n')
        buffer.append(make_sample(1))

        assert len(buffer.read_all()) == 2

    def test_clear(self, tmp_path):
        """测试：清空后为空"""
        buffer = LocalBuffer(tmp_path / "buffer.jsonl")
        buffer.append(make_sample(0))
        assert buffer.size() > 0

        buffer.clear()

        assert buffer.read_all() == []
        assert buffer.size() == 0

    def test_read_batch_reports_consumed_bytes(self, tmp_path):
        """测试：read_batch 返回的字节数等于读取时的文件大小"""
        buffer = LocalBuffer(tmp_path / "buffer.jsonl")
        assert buffer.read_batch() == ([], 0)

        buffer.append(make_sample(0))
        buffer.append(make_sample(1))

        samples, consumed = buffer.read_batch()
        assert len(samples) == 2
        assert consumed == buffer.size()

    def test_discard_keeps_later_records(self, tmp_path):
        """测试：discard 只删除已读取的前缀，之后追加的记录保留"""
        buffer = LocalBuffer(tmp_path / "buffer.jsonl")
        buffer.append(make_sample(0, cpu_load_percent=10.0))
        _, consumed = buffer.read_batch()

        buffer.append(make_sample(1, cpu_load_percent=20.0))
        buffer.append(make_sample(2, cpu_load_percent=30.0))
        buffer.discard(consumed)

        assert [s.cpu_load_percent for s in buffer.read_all()] == [20.0, 30.0]

    def test_discard_everything(self, tmp_path):
        """测试：前缀即全部内容时清空文件"""
        buffer = LocalBuffer(tmp_path / "buffer.jsonl")
        buffer.append(make_sample(0))
        _, consumed = buffer.read_batch()

        buffer.discard(consumed)

        assert buffer.size() == 0

    def test_discard_consumed_partial_record(self, tmp_path):
        """测试：已读取的半行随前缀一起删除，之后追加的记录完整保留"""
        path = tmp_path / "buffer.jsonl"
        buffer = LocalBuffer(path)
        buffer.append(make_sample(0, cpu_load_percent=10.0))
        with open(path, "ab") as f:
            f.write(b'{"pc_id": "pc-01"')
        _, consumed = buffer.read_batch()

        buffer.append(make_sample(1, cpu_load_percent=20.0))
        buffer.discard(consumed)

        assert [s.cpu_load_percent for s in buffer.read_all()] == [20.0]

    def test_creates_parent_directory(self, tmp_path):
        """测试：自动创建父目录"""
        buffer = LocalBuffer(tmp_path / "nested" / "dir" / "buffer.jsonl")
        buffer.append(make_sample(0))

        assert len(buffer.read_all()) == 1
