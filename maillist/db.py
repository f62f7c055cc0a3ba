from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

import yaml

_PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
DEFAULT_DB_NAME = "maillist.db"
ENV_DB_PATH = "MAILLIST_DB_PATH"


def load_db_path_from_config(cfg_path: Optional[str] = None) -> Optional[str]:
    """config.yaml 里的 db_path；文件缺失、格式错误或未配置时返回 None"""
    cfg_path = cfg_path or os.path.join(_PROJECT_ROOT, "config.yaml")
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return None
    if not isinstance(cfg, dict):
        return None
    value = cfg.get("db_path")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def get_db_path() -> str:
    """MAILLIST_DB_PATH > config.yaml:db_path > <project>/maillist.db，并创建所在目录"""
    path = (
        os.environ.get(ENV_DB_PATH)
        or load_db_path_from_config()
        or os.path.join(_PROJECT_ROOT, DEFAULT_DB_NAME)
    )
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    return path


@contextmanager
def get_conn(db_path: str | None = None) -> Iterator[sqlite3.Connection]:
    # autocommit: 每条语句各自成事务
    conn = sqlite3.connect(db_path or get_db_path(), check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()
