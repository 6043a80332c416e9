"""SQL Query Executor."""

from __future__ import annotations

import time
import uuid
from datetime import date, datetime, time as dt_time, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from reportstudio.config import settings
from reportstudio.config_system import NLQRules, get_default_rules
from reportstudio.logger import get_logger
from reportstudio.nlq.exceptions import UnsafeExecutionError
from reportstudio.nlq.models import Dialect, NLQResponse
from reportstudio.nlq.safety import find_dangerous_keyword
from reportstudio.nlq.tenant_filter import TenantPolicy, validate_tenant_filter

logger = get_logger(__name__)


def to_json_safe(value: Any) -> Any:
    """Convert a database value into something json.dumps accepts."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, dt_time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    return str(value)


class SQLExecutor:
    """
    Runs the SQL of a successful NLQResponse for one tenant.

    Refuses error responses, empty SQL, unresolved tenant placeholders,
    denied keywords and any SQL whose tenant filter does not match the
    executing tenant.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        rules: Optional[NLQRules] = None,
        dialect: Union[Dialect, str, None] = None,
        max_rows: Optional[int] = None,
    ):
        """
        Args:
            database_url: SQLAlchemy URL (default: settings.database_url)
            engine: Pre-built engine; takes precedence over database_url
            rules: Engine rules (default: configured rules)
            dialect: Dialect the SQL was generated for (default: settings.default_dialect)
            max_rows: Row cap per query (default: settings.max_result_rows)
        """
        self.engine = engine or create_engine(database_url or settings.database_url, pool_pre_ping=True)
        self.rules = rules or get_default_rules()
        self.policy = TenantPolicy.from_config(self.rules.tenant_policy)
        self.dialect = Dialect(dialect or settings.default_dialect)
        self.max_rows = max_rows or settings.max_result_rows

    def check_executable(self, response: NLQResponse, tenant_id: str) -> str:
        """Return the SQL to run, or raise UnsafeExecutionError."""
        if response.error:
            raise UnsafeExecutionError(f"Refusing to execute a failed response ({response.error})")
        sql = (response.sql or "").strip()
        if not sql:
            raise UnsafeExecutionError("Refusing to execute an empty query")
        if self.rules.placeholder in sql:
            raise UnsafeExecutionError("Query still contains the tenant placeholder")
        denied = find_dangerous_keyword(sql, self.rules.dangerous_keywords)
        if denied:
            raise UnsafeExecutionError(f"Query contains dangerous operation: {denied}")

        report = validate_tenant_filter(sql, tenant_id, self.policy, self.dialect)
        if not report.valid:
            logger.error(f"[sql-exec] tenant filter check failed: {report.message}")
            raise UnsafeExecutionError(f"Tenant filter check failed: {report.message}")
        return sql

    def execute(
        self,
        response: NLQResponse,
        tenant_id: str,
        max_rows: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Execute a generated query for ``tenant_id``.

        Returns:
            Dictionary with:
                - columns: List of column names
                - rows: List of row dictionaries
                - row_count: Number of rows returned
                - truncated: Whether results were truncated
                - execution_time_ms: Wall time of the query
            Database errors come back as the same shape plus "error" and "error_type".

        Raises:
            UnsafeExecutionError: If the response must not be executed
        """
        sql = self.check_executable(response, tenant_id)
        return self._run(sql, max_rows or self.max_rows)

    def _run(self, sql: str, max_rows: int) -> Dict[str, Any]:
        t0 = time.perf_counter()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(sql))
                columns: List[str] = list(result.keys())
                fetched = result.fetchmany(max_rows + 1)  # one extra to detect truncation

            truncated = len(fetched) > max_rows
            if truncated:
                fetched = fetched[:max_rows]

            rows = [
                {col: to_json_safe(value) for col, value in zip(columns, row)}
                for row in fetched
            ]
            elapsed = (time.perf_counter() - t0) * 1000.0
            logger.info(
                f"[sql-exec] query executed successfully: {len(rows)} rows returned"
                f"{' (truncated)' if truncated else ''} in {elapsed:.1f}ms"
            )
            return {
                "columns": columns,
                "rows": rows,
                "row_count": len(rows),
                "truncated": truncated,
                "execution_time_ms": round(elapsed, 2),
            }

        except SQLAlchemyError as e:
            logger.error(f"[sql-exec] database error: {e}")
            return {
                "error": str(e),
                "error_type": "database_error",
                "columns": [],
                "rows": [],
                "row_count": 0,
                "truncated": False,
                "execution_time_ms": round((time.perf_counter() - t0) * 1000.0, 2),
            }

    def test_connection(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"[sql-exec] connection test failed: {e}")
            return False
