from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from pos.db import q, x
from pos.errors import RemoteWriteFailure, ValidationError
from pos.models import DEFAULT_TAX_RATE, BusinessConfig
from pos.utils import iso_now

logger = logging.getLogger(__name__)


def get_business_config(conn) -> BusinessConfig:
    rows = q(conn, "SELECT * FROM business_config WHERE id=1")
    return BusinessConfig.from_row(rows[0]) if rows else BusinessConfig()


def update_business_config(
    conn,
    *,
    name: str,
    address: Optional[str] = None,
    phone: Optional[str] = None,
    tax_rate: Optional[float] = None,
) -> BusinessConfig:
    name = str(name or "").strip()
    if not name:
        raise ValidationError("Business name is required.")
    try:
        rate = float(tax_rate) if tax_rate not in (None, "") else DEFAULT_TAX_RATE
    except (TypeError, ValueError):
        raise ValidationError("Tax rate must be a number.")
    if rate < 0 or rate > 100:
        raise ValidationError("Tax rate must be between 0 and 100.")

    try:
        x(
            conn,
            """
            INSERT INTO business_config (id, name, address, phone, tax_rate, updated_at)
            VALUES (1, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              name=excluded.name, address=excluded.address, phone=excluded.phone,
              tax_rate=excluded.tax_rate, updated_at=excluded.updated_at
            """,
            (name, (address or "").strip() or None, (phone or "").strip() or None, rate, iso_now()),
        )
    except sqlite3.Error as e:
        conn.rollback()
        logger.exception("Saving business config failed")
        raise RemoteWriteFailure("Could not save the configuration.") from e

    logger.info("Business config updated (%s)", name)
    return get_business_config(conn)
