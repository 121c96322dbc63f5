from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Union

import streamlit as st

from pos.schema import SCHEMA_SQL

logger = logging.getLogger(__name__)


def _connect(db_path: Union[Path, str]) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> sqlite3.Connection:
    logger.info("Opening database %s", db_path)
    return _connect(db_path)


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    cols = [r["name"] for r in rows]
    return column in cols


def ensure_schema(conn: sqlite3.Connection) -> None:
    # Create base schema (for new installs)
    conn.executescript(SCHEMA_SQL)

    # ---- migrations for existing installs ----
    # Credit payments gained balance snapshots after the first release
    if not _column_exists(conn, "credit_payments", "previous_balance"):
        conn.execute("ALTER TABLE credit_payments ADD COLUMN previous_balance REAL NOT NULL DEFAULT 0;")
        conn.execute("ALTER TABLE credit_payments ADD COLUMN new_balance REAL NOT NULL DEFAULT 0;")

    # Sale movements point back at the sale that caused them
    if not _column_exists(conn, "inventory_movements", "reference_id"):
        conn.execute("ALTER TABLE inventory_movements ADD COLUMN reference_id INTEGER;")

    conn.execute("INSERT OR IGNORE INTO business_config (id) VALUES (1);")
    conn.commit()


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    cur = conn.execute(sql, tuple(params or ()))
    rows = cur.fetchall()
    cur.close()
    return rows


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = (), *, commit: bool = True) -> int:
    cur = conn.execute(sql, tuple(params or ()))
    if commit:
        conn.commit()
    last = cur.lastrowid
    cur.close()
    return int(last or 0)


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Group several writes into one commit. Statements inside the block must use
    ``x(..., commit=False)``; any exception rolls the whole block back.
    """
    try:
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
