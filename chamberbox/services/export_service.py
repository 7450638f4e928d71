"""
Whole-database backup and schema dumps for administrators.

The backup reads every mapped table in pages and returns the rows as JSON
together with a SQL script of INSERT statements that re-creates them. A table
that cannot be read is reported in ``errors`` and the export carries on.
"""
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
import json
import logging

from fastapi.encoders import jsonable_encoder
from sqlalchemy import Table, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.schema import CreateIndex, CreateTable

from ..core.config import settings
from ..core.database import Base, import_models

logger = logging.getLogger(__name__)

TOKEN_NUMBERING_NOTE = """\
-- Queue token numbering
-- queue_tokens.token_number is assigned by the application on insert:
--   token_number = COALESCE(MAX(token_number) for the same session_id, 0) + 1
-- Any value supplied by the client is ignored. The unique constraint
-- uq_queue_tokens_number (session_id, token_number) backs the rule.
"""


def _sql_literal(value) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, Enum):
        # Enum columns store member names
        return f"'{value.name}'"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return f"'{value.isoformat()}'"
    if isinstance(value, (dict, list)):
        value = json.dumps(value)
    text = str(value).replace("'", "''")
    return f"'{text}'"


def insert_statement(table: Table, row: dict) -> str:
    columns = ", ".join(row.keys())
    values = ", ".join(_sql_literal(v) for v in row.values())
    return f"INSERT INTO {table.name} ({columns}) VALUES ({values});"


class ExportService:
    def __init__(self, db: Session, page_size: Optional[int] = None):
        self.db = db
        self.page_size = page_size or settings.EXPORT_PAGE_SIZE

    def tables(self) -> List[Table]:
        import_models()
        # Parents before children so the restore script satisfies foreign keys
        return list(Base.metadata.sorted_tables)

    def _read_table(self, table: Table) -> List[dict]:
        order = list(table.primary_key.columns) or list(table.columns)
        rows: List[dict] = []
        offset = 0

        while True:
            page = self.db.execute(
                select(table).order_by(*order).limit(self.page_size).offset(offset)
            ).mappings().all()
            rows.extend(dict(row) for row in page)
            if len(page) < self.page_size:
                break
            offset += self.page_size

        return rows

    def export_database(self, exported_by: str) -> dict:
        data: Dict[str, List[dict]] = {}
        errors: List[str] = []
        statements: List[str] = []

        for table in self.tables():
            try:
                rows = self._read_table(table)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Error fetching {table.name}: {str(e)}")
                errors.append(f"{table.name}: {e.__class__.__name__}")
                continue

            data[table.name] = rows
            statements.extend(insert_statement(table, row) for row in rows)
            logger.info(f"Exported {table.name}: {len(rows)} rows")

        result = {
            "exported_at": datetime.utcnow().isoformat(),
            "exported_by": exported_by,
            "table_count": len(data),
            "row_counts": {name: len(rows) for name, rows in data.items()},
            "data": jsonable_encoder(data),
            "restore_script": "\n".join(statements),
        }
        if errors:
            result["errors"] = errors

        logger.info(f"Export complete. {len(data)} tables exported.")
        return result

    def export_schema(self) -> str:
        dialect = self.db.get_bind().dialect
        parts = [
            f"-- {settings.APP_NAME} schema",
            f"-- Generated {datetime.utcnow().isoformat()} for {dialect.name}",
            "",
        ]

        for table in self.tables():
            parts.append(str(CreateTable(table).compile(dialect=dialect)).strip() + ";")
            for index in sorted(table.indexes, key=lambda i: i.name or ""):
                parts.append(str(CreateIndex(index).compile(dialect=dialect)).strip() + ";")
            parts.append("")

        parts.append(TOKEN_NUMBERING_NOTE)
        return "\n".join(parts)
