"""
SQLite 存储

封装所有 SQLite 操作。进程列表以 JSON 文本存储，时间同时保存 ISO 文本与毫秒整数
（毫秒用于排序和过滤）。
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models import Metric
from ..utils import from_epoch_ms, to_epoch_ms
from .base import Store

SCHEMA = """
CREATE TABLE IF NOT EXISTS metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pc_id TEXT NOT NULL,
    lab_id TEXT NOT NULL,
    ts_ms INTEGER NOT NULL,
    sample_count INTEGER NOT NULL DEFAULT 1,
    cpu_load_percent REAL NOT NULL,
    mem_used_percent REAL NOT NULL,
    disk_used_percent REAL NOT NULL,
    net_used_percent REAL NOT NULL,
    net_kbps REAL,
    disk_read_kbps REAL NOT NULL,
    disk_write_kbps REAL NOT NULL,
    uptime_seconds REAL NOT NULL,
    processes TEXT NOT NULL DEFAULT '[]'
);

CREATE INDEX IF NOT EXISTS idx_metrics_lab_ts ON metrics(lab_id, ts_ms DESC);
CREATE INDEX IF NOT EXISTS idx_metrics_pc_ts ON metrics(pc_id, ts_ms DESC);
"""

COLUMNS = (
    "pc_id", "lab_id", "ts_ms", "sample_count",
    "cpu_load_percent", "mem_used_percent", "disk_used_percent", "net_used_percent",
    "net_kbps", "disk_read_kbps", "disk_write_kbps", "uptime_seconds",
    "processes",
)


class SqliteStore(Store):
    """SQLite 存储后端"""

    def __init__(self, db_path: str, timeout: int = 30):
        """
        初始化数据库

        Args:
            db_path: 数据库文件路径（":memory:" 不适用，每次连接都是新库）
            timeout: 写锁等待时间（秒）
        """
        self.db_path = Path(db_path)
        self.timeout = timeout

        # 确保目录存在
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self.get_conn() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def get_conn(self):
        """
        获取数据库连接（上下文管理器）

        使用方式：
            with store.get_conn() as conn:
                cursor = conn.execute("SELECT ...")
        """
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def describe(self) -> str:
        return f"sqlite ({self.db_path})"

    # =========================================================================
    # 写入
    # =========================================================================

    def insert(self, metric: Metric) -> str:
        """写入一条记录"""
        row = self._to_row(metric)
        placeholders = ", ".join("?" for _ in COLUMNS)
        with self.get_conn() as conn:
            cursor = conn.execute(
                f"INSERT INTO metrics ({', '.join(COLUMNS)}) VALUES ({placeholders})",
                [row[c] for c in COLUMNS],
            )
            return str(cursor.lastrowid)

    # =========================================================================
    # 查询
    # =========================================================================

    def find(
        self,
        pc_id: Optional[str] = None,
        lab_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[Metric]:
        """按时间倒序查询"""
        conditions = []
        params: List[Any] = []
        if pc_id is not None:
            conditions.append("pc_id = ?")
            params.append(pc_id)
        if lab_id is not None:
            conditions.append("lab_id = ?")
            params.append(lab_id)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.append(limit)

        with self.get_conn() as conn:
            cursor = conn.execute(f"""
                SELECT id, {', '.join(COLUMNS)}
                FROM metrics
                {where}
                ORDER BY ts_ms DESC, id DESC
                LIMIT ?
            """, params)
            return [self._from_row(row) for row in cursor.fetchall()]

    def distinct_pc_ids(self, lab_id: Optional[str] = None) -> List[str]:
        with self.get_conn() as conn:
            if lab_id is None:
                cursor = conn.execute("SELECT DISTINCT pc_id FROM metrics ORDER BY pc_id")
            else:
                cursor = conn.execute(
                    "SELECT DISTINCT pc_id FROM metrics WHERE lab_id = ? ORDER BY pc_id",
                    (lab_id,),
                )
            return [row["pc_id"] for row in cursor.fetchall()]

    def distinct_lab_ids(self) -> List[str]:
        with self.get_conn() as conn:
            cursor = conn.execute("SELECT DISTINCT lab_id FROM metrics ORDER BY lab_id")
            return [row["lab_id"] for row in cursor.fetchall()]

    # =========================================================================
    # 数据清理
    # =========================================================================

    def delete_before(self, cutoff: datetime) -> int:
        with self.get_conn() as conn:
            cursor = conn.execute("DELETE FROM metrics WHERE ts_ms < ?", (to_epoch_ms(cutoff),))
            return cursor.rowcount

    # =========================================================================
    # 行转换
    # =========================================================================

    @staticmethod
    def _to_row(metric: Metric) -> Dict[str, Any]:
        data = metric.model_dump(mode="json", exclude={"id", "timestamp", "processes"})
        data["ts_ms"] = to_epoch_ms(metric.timestamp)
        data["processes"] = json.dumps(
            [p.model_dump(mode="json", exclude_none=True) for p in metric.processes]
        )
        return data

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Metric:
        data = {c: row[c] for c in COLUMNS}
        data["id"] = str(row["id"])
        data["timestamp"] = from_epoch_ms(data.pop("ts_ms"))
        data["processes"] = json.loads(data["processes"] or "[]")
        return Metric.model_validate(data)
