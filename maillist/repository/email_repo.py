"""
订阅者数据访问层
emails 表：每个邮箱一行，退订只打 opt_out 标记，不做物理删除
"""
from __future__ import annotations

import math
import sqlite3
from datetime import datetime, timezone
from sqlite3 import Connection
from typing import List, Optional

from pydantic import AwareDatetime, BaseModel


class EmailEntry(BaseModel):
    id: Optional[int] = None
    email: str
    confirmed_at: Optional[AwareDatetime] = None
    opt_out: bool = False


DDL = """
CREATE TABLE emails (
    id INTEGER PRIMARY KEY,
    email TEXT UNIQUE,
    confirmed_at INTEGER,
    opt_out INTEGER NOT NULL DEFAULT 0
)
"""


def try_create(conn: Connection):
    """
    创建 emails 表。表已存在时静默返回，其它错误向上抛出，由启动方决定是否中止。
    """
    try:
        conn.execute(DDL)
    except sqlite3.OperationalError as e:
        if "already exists" not in str(e):
            raise


def _to_epoch(ts: Optional[datetime]) -> Optional[int]:
    # 向下取整到秒，1970 之前的时间不会被截断到 0
    return None if ts is None else math.floor(ts.timestamp())


def _from_epoch(value: Optional[int]) -> Optional[datetime]:
    # NULL 表示未确认；0 是真实的 1970-01-01T00:00:00Z
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _entry_from_row(row: sqlite3.Row) -> EmailEntry:
    return EmailEntry(
        id=row["id"],
        email=row["email"],
        confirmed_at=_from_epoch(row["confirmed_at"]),
        opt_out=bool(row["opt_out"]),
    )


def create_email(conn: Connection, email: str) -> int:
    """
    插入新订阅者（未确认、未退订）。

    Raises:
        sqlite3.IntegrityError: 邮箱已存在
    """
    cur = conn.execute(
        "INSERT INTO emails(email, confirmed_at, opt_out) VALUES(?, NULL, 0)",
        (email,),
    )
    return cur.lastrowid


def get_email(conn: Connection, email: str) -> Optional[EmailEntry]:
    row = conn.execute(
        "SELECT id, email, confirmed_at, opt_out FROM emails WHERE email = ?",
        (email,),
    ).fetchone()
    return _entry_from_row(row) if row else None


def update_email(conn: Connection, entry: EmailEntry):
    """按 email 插入或更新；已存在时只改 confirmed_at / opt_out，entry.id 被忽略。"""
    conn.execute(
        """
        INSERT INTO emails(email, confirmed_at, opt_out)
        VALUES(?, ?, ?)
        ON CONFLICT(email) DO UPDATE SET
            confirmed_at = excluded.confirmed_at,
            opt_out = excluded.opt_out
        """,
        (entry.email, _to_epoch(entry.confirmed_at), 1 if entry.opt_out else 0),
    )


def delete_email(conn: Connection, email: str):
    # 软删除：不存在的邮箱匹配 0 行，也算成功
    conn.execute("UPDATE emails SET opt_out = 1 WHERE email = ?", (email,))


def get_email_batch(conn: Connection, page: int, count: int) -> List[EmailEntry]:
    """
    分页获取未退订的订阅者，按 id 升序

    Args:
        conn: 数据库连接
        page: 页码，从 1 开始
        count: 每页条数

    Returns:
        订阅者列表，超出范围的页返回空列表
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if count < 0:
        raise ValueError("count must be >= 0")
    rows = conn.execute(
        """
        SELECT id, email, confirmed_at, opt_out
        FROM emails
        WHERE opt_out = 0
        ORDER BY id ASC
        LIMIT ? OFFSET ?
        """,
        (count, (page - 1) * count),
    ).fetchall()
    return [_entry_from_row(r) for r in rows]
