# Overview: JSON backup export, naive restore and admin data clearing.

"""
Backup file format:

    {
      "metadata": {"timestamp", "version", "app_name", "record_counts", "total_records"},
      "data": {"<table>": [ {column: value, ...}, ... ], ...}
    }

Records carry every column except system fields (id, created_at,
updated_at, version_id). Datetimes are ISO-8601 "Z" strings.

Restore is a per-table append-insert with no conflict resolution: each
record is committed on its own, a failing record is logged and skipped,
and the caller gets a per-table summary.

Ids are not carried over but foreign keys are. Restored rows get fresh ids
from the database, so a child row (sale_lines.sale_id,
stock_movements.product_id, products.category_id) keeps pointing at the id
its parent had when exported. Unless the target tables were empty with
their id counters reset, those references no longer match and the stock
ledger will not replay against the restored products. Every restore that
writes rows says so in its "warnings".
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

from flask import current_app
from sqlalchemy import DateTime
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    Category,
    Customer,
    PaymentTransaction,
    Product,
    Purchase,
    PurchaseLine,
    Sale,
    SaleLine,
    StockMovement,
    Supplier,
    UserProfile,
)
from phonepos.time_utils import parse_iso_datetime, to_utc_z, utcnow
from .document_service import PURCHASE_DOCUMENT, SALE_DOCUMENT, ensure_sequence_floor

logger = logging.getLogger(__name__)

# Insert order; parents before children
BACKUP_TABLES = {
    "categories": Category,
    "suppliers": Supplier,
    "customers": Customer,
    "products": Product,
    "sales": Sale,
    "sale_lines": SaleLine,
    "payment_transactions": PaymentTransaction,
    "purchases": Purchase,
    "purchase_lines": PurchaseLine,
    "stock_movements": StockMovement,
    "user_profiles": UserProfile,
}

SYSTEM_FIELDS = {"id", "created_at", "updated_at", "version_id"}

REFERENCE_WARNING = (
    "Restored rows were given new ids but keep the foreign keys from the backup; "
    "references between restored rows may not match. Run `flask ledger verify` "
    "before relying on stock history."
)

PROTECTED_TABLES = {
    "users",
    "session_tokens",
    "roles",
    "permissions",
    "role_permissions",
    "user_roles",
}


class BackupError(Exception):
    """Raised for malformed backups and refused maintenance operations."""


def _serialize_value(value):
    if isinstance(value, datetime):
        return to_utc_z(value)
    return value


def _export_record(model, row) -> dict:
    return {
        col.key: _serialize_value(getattr(row, col.key))
        for col in model.__mapper__.columns
        if col.key not in SYSTEM_FIELDS
    }


def export_backup() -> dict:
    data = {}
    for table, model in BACKUP_TABLES.items():
        rows = db.session.query(model).order_by(model.id.asc()).all()
        data[table] = [_export_record(model, row) for row in rows]

    record_counts = {table: len(records) for table, records in data.items()}
    return {
        "metadata": {
            "timestamp": to_utc_z(utcnow()),
            "version": current_app.config.get("BACKUP_VERSION", "1.0"),
            "app_name": current_app.config.get("APP_NAME", "PhonePOS"),
            "record_counts": record_counts,
            "total_records": sum(record_counts.values()),
        },
        "data": data,
    }


def _load_payload(payload) -> dict:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise BackupError(f"Invalid backup format: {exc}")
    if not isinstance(payload, dict):
        raise BackupError("Invalid backup format: expected an object")
    if not isinstance(payload.get("data"), dict):
        raise BackupError("Invalid backup format: missing data section")
    return payload


def _build_record(model, record: dict):
    columns = {col.key: col for col in model.__mapper__.columns if col.key not in SYSTEM_FIELDS}
    values = {}
    for key, value in record.items():
        col = columns.get(key)
        if col is None:
            continue
        if isinstance(col.type, DateTime) and isinstance(value, str):
            value = parse_iso_datetime(value)
        values[key] = value
    if not values:
        return None
    return model(**values)


def _restore_table(table: str, model, records: list) -> dict:
    restored = 0
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            logger.warning("Skipping %s[%s]: not an object", table, index)
            continue
        try:
            row = _build_record(model, record)
            if row is None:
                continue
            db.session.add(row)
            db.session.commit()
            restored += 1
        except (SQLAlchemyError, ValueError, TypeError) as exc:
            db.session.rollback()
            logger.warning("Error inserting record %s[%s]: %s", table, index, exc)
    return {"table": table, "restored": restored, "total": len(records)}


def restore_backup(payload) -> dict:
    """
    Append every record of a backup into the current database.

    Accepts the parsed dict or its JSON text. Existing rows are kept.
    """
    backup = _load_payload(payload)
    data = backup["data"]

    results = []
    ordered = [t for t in BACKUP_TABLES if t in data] + [t for t in data if t not in BACKUP_TABLES]
    for table in ordered:
        records = data[table]
        if not isinstance(records, list):
            continue
        model = BACKUP_TABLES.get(table)
        if model is None:
            logger.error("Error restoring %s: unknown table", table)
            results.append({"table": table, "error": f"Unknown table: {table}"})
            continue
        results.append(_restore_table(table, model, records))

    ensure_sequence_floor(SALE_DOCUMENT, [n for (n,) in db.session.query(Sale.sale_number).all()])
    ensure_sequence_floor(PURCHASE_DOCUMENT, [n for (n,) in db.session.query(Purchase.purchase_number).all()])
    db.session.commit()

    logger.info("Backup restored: %s", ", ".join(f"{r['table']}={r.get('restored', 'error')}" for r in results))
    warnings = []
    if any(r.get("restored") for r in results):
        warnings.append(REFERENCE_WARNING)
        logger.warning("Backup restore: foreign keys kept as exported; run ledger verify")

    return {
        "success": True,
        "message": "Data restored successfully from backup",
        "results": results,
        "warnings": warnings,
        "metadata": backup.get("metadata") or {},
    }


def get_restore_stats(payload) -> dict:
    """Preview of a backup: its metadata and record count per table."""
    backup = _load_payload(payload)
    return {
        "metadata": backup.get("metadata") or {},
        "tables": {
            table: len(records)
            for table, records in backup["data"].items()
            if isinstance(records, list)
        },
    }


def _clear_model(model) -> int:
    count = db.session.query(model).delete(synchronize_session=False)
    db.session.commit()
    return count


def clear_all_data() -> dict:
    """
    Delete all business data; users, roles and sessions are kept.

    Children are cleared before parents. A table that fails is reported
    and the rest still run.
    """
    results = []
    for table in reversed(list(BACKUP_TABLES)):
        try:
            results.append({"table": table, "cleared": _clear_model(BACKUP_TABLES[table])})
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Error clearing %s: %s", table, exc)
            results.append({"table": table, "error": str(exc)})

    logger.info("Application data reset")
    return {
        "success": True,
        "message": "Application data has been reset successfully",
        "results": results,
    }


def clear_table(table: str) -> dict:
    if table in PROTECTED_TABLES:
        raise BackupError("Cannot clear protected system tables")
    model = BACKUP_TABLES.get(table)
    if model is None:
        raise BackupError(f"Unknown table: {table}")

    try:
        deleted = _clear_model(model)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackupError(f"Failed to clear table {table}: {exc}") from exc

    logger.info("Cleared %s records from %s", deleted, table)
    return {
        "success": True,
        "message": f"Cleared {deleted} records from {table}",
        "deleted_count": deleted,
    }
