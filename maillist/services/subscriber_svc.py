from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone

from ..db import get_conn
from ..repository import email_repo
from ..repository.email_repo import EmailEntry

logger = logging.getLogger(__name__)


def ensure_email_schema():
    """启动时调用；失败则记录并抛出，由调用方决定是否退出"""
    try:
        with get_conn() as conn:
            email_repo.try_create(conn)
            conn.commit()
    except (sqlite3.Error, OSError) as e:
        logger.error(f"ensure_email_schema failed: {e}")
        raise


def subscribe(email: str) -> int:
    with get_conn() as conn:
        try:
            new_id = email_repo.create_email(conn, email)
        except sqlite3.IntegrityError:
            logger.warning(f"Duplicate subscribe attempt: {email}")
            raise ValueError("already_subscribed")
        conn.commit()
    logger.info(f"Subscribed: {email} (id={new_id})")
    return new_id


def confirm(email: str, at: datetime | None = None) -> EmailEntry:
    ts = (at or datetime.now(timezone.utc)).replace(microsecond=0)
    entry = EmailEntry(email=email, confirmed_at=ts, opt_out=False)
    with get_conn() as conn:
        email_repo.update_email(conn, entry)
        conn.commit()
        stored = email_repo.get_email(conn, email)
    logger.info(f"Confirmed: {email} at {ts.isoformat()}")
    return stored


def unsubscribe(email: str):
    with get_conn() as conn:
        email_repo.delete_email(conn, email)
        conn.commit()
    logger.info(f"Unsubscribed: {email}")


def get_subscriber(email: str) -> EmailEntry | None:
    with get_conn() as conn:
        return email_repo.get_email(conn, email)


def list_active(page: int = 1, count: int = 10) -> list[EmailEntry]:
    with get_conn() as conn:
        return email_repo.get_email_batch(conn, page, count)
