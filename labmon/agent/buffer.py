"""
本地缓冲

Agent 本机的追加式持久化日志：每行一条 JSON 编码的 Sample，以换行结尾。
崩溃时写了一半的行在读取时跳过，不会影响其它记录。
"""

import logging
import os
from pathlib import Path
from typing import List, Tuple, Union

from pydantic import ValidationError

from ..models import Sample

logger = logging.getLogger(__name__)


class LocalBuffer:
    """
    追加式缓冲文件

    每条记录自包含，append 与 read_all/discard 之间不需要加锁；
    同一个文件只允许一个 Agent 进程使用（见 utils.acquire_single_instance_lock）。
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, sample: Sample):
        """
        追加一条记录

        若文件末尾不是换行（上次追加中途崩溃），先补一个换行，
        使残缺记录与新记录分处两行。

        Raises:
            OSError: 写入失败
        """
        line = sample.model_dump_json() + "\n"

        with open(self.path, "a+b") as f:
            f.seek(0, 2)
            if f.tell() > 0:
                f.seek(-1, 2)
                if f.read(1) != b"\n":
                    line = "\n" + line
            # 一次 write 写完整条记录
            f.write(line.encode("utf-8"))
            f.flush()

    def read_all(self) -> List[Sample]:
        """
        按追加顺序读出全部记录

        无法解析或校验失败的行（如崩溃留下的半行）被跳过。

        Raises:
            OSError: 读取失败（文件不存在视为空）
        """
        samples, _ = self.read_batch()
        return samples

    def read_batch(self) -> Tuple[List[Sample], int]:
        """
        读出全部记录，并返回本次读到的字节数

        Flusher 写入成功后用该字节数调用 discard，只删除已上报的部分。

        Raises:
            OSError: 读取失败（文件不存在视为空）
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return [], 0

        samples = []
        skipped = 0
        for line in raw.split(b"\n"):
            if not line.strip():
                continue
            try:
                samples.append(Sample.model_validate_json(line))
            except (ValidationError, ValueError):
                skipped += 1

        if skipped:
            logger.warning(f"Skipped {skipped} malformed record(s) in buffer {self.path}")

        return samples, len(raw)

    def discard(self, consumed: int):
        """
        删除文件开头的 consumed 字节，保留之后追加的记录

        剩余内容先写入临时文件再原子替换，崩溃时旧文件保持完整。

        Raises:
            OSError: 读写失败
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return

        rest = raw[consumed:]
        if not rest:
            self.clear()
            return

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "wb") as f:
            f.write(rest)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)

    def clear(self):
        """截断为空"""
        with open(self.path, "wb"):
            pass

    def size(self) -> int:
        """当前文件字节数"""
        try:
            return self.path.stat().st_size
        except FileNotFoundError:
            return 0
