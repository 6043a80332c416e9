"""
Heuristic confidence scoring for generated SQL.

The score is a pure function of the SQL text and the optional schema. It looks
at a handful of structural features (joins, aggregates, filters, ordering,
table and column counts) and how many referenced tables exist in the schema.
"""

import re
from typing import Any, Dict, List, Optional, Union

from reportstudio.nlq.models import ConfidenceFactors, ConfidenceScore, SchemaDescriptor
from reportstudio.nlq.safety import first_denied_keyword
from reportstudio.nlq.sql_tokens import unquote_identifier
from reportstudio.nlq.visualization import AGGREGATE_RE, GROUP_BY_RE, ORDER_BY_RE

_PART = r'(?:"[^"]+"|`[^`]+`|\[[^\]]+\]|\w+)'
_IDENT = r"(" + _PART + r"(?:\." + _PART + r")*)"
FROM_RE = re.compile(r"\bFROM\s+" + _IDENT, re.IGNORECASE)
JOIN_TARGET_RE = re.compile(r"\bJOIN\s+" + _IDENT, re.IGNORECASE)
JOIN_RE = re.compile(r"\bJOIN\b", re.IGNORECASE)
WHERE_RE = re.compile(r"\bWHERE\b", re.IGNORECASE)
SELECT_LIST_RE = re.compile(r"\bSELECT\s+(.+?)\s+FROM\b", re.IGNORECASE | re.DOTALL)

BASE_CONFIDENCE = 0.5


def _table_name(reference: str) -> str:
    # public."SalesLead" -> SALESLEAD
    last = re.findall(_PART, reference)[-1]
    return unquote_identifier(last).upper()


def _count_select_columns(sql: str) -> int:
    match = SELECT_LIST_RE.search(sql)
    if not match:
        return 1
    depth, count = 0, 1
    for ch in match.group(1):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
        elif ch == "," and depth == 0:
            count += 1
    return count


def _referenced_tables(sql: str) -> List[str]:
    refs = [m.group(1) for m in FROM_RE.finditer(sql)]
    refs += [m.group(1) for m in JOIN_TARGET_RE.finditer(sql)]
    return [_table_name(r) for r in refs]


def calculate_confidence_score(
    sql: str,
    schema: Optional[Union[SchemaDescriptor, Dict[str, Any]]] = None,
) -> ConfidenceScore:
    """
    Score a SQL string.

    Args:
        sql: SQL text, typically model output
        schema: Schema the question was asked against, if any

    Returns:
        ConfidenceScore with overall in [0, 1]
    """
    sql = sql or ""
    if isinstance(schema, dict):
        schema = SchemaDescriptor.from_dict(schema)
    has_schema = schema is not None and schema.has_tables

    upper = sql.upper()
    syntax_valid = "SELECT" in upper and first_denied_keyword(sql) is None
    semantic_valid = syntax_valid and "FROM" in upper

    has_joins = bool(JOIN_RE.search(sql))
    has_aggregations = bool(AGGREGATE_RE.search(sql) or GROUP_BY_RE.search(sql))
    has_filters = bool(WHERE_RE.search(sql))
    has_order_by = bool(ORDER_BY_RE.search(sql))
    table_count = len(FROM_RE.findall(sql))
    column_count = _count_select_columns(sql)

    schema_match = 0.5
    if has_schema:
        known = {t.name.upper() for t in schema.tables}
        referenced = _referenced_tables(sql)
        matched = [t for t in referenced if t in known]
        schema_match = round(len(matched) / max(len(referenced), 1), 4)

    overall = BASE_CONFIDENCE
    if syntax_valid:
        overall += 0.2
    if semantic_valid:
        overall += 0.1
    if schema_match > 0.7:
        overall += 0.1
    if has_filters:
        overall += 0.05
    if has_order_by:
        overall += 0.05
    if not has_schema and (has_joins or table_count > 2):
        overall -= 0.1
    overall = round(min(1.0, max(0.0, overall)), 4)

    complexity = (
        (0.3 if has_joins else 0.0)
        + (0.3 if has_aggregations else 0.0)
        + (0.2 if table_count > 1 else 0.0)
        + (0.2 if column_count > 5 else 0.0)
    )

    return ConfidenceScore(
        overall=overall,
        schema_match=schema_match,
        syntax_valid=syntax_valid,
        semantic_valid=semantic_valid,
        complexity_score=round(complexity, 4),
        factors=ConfidenceFactors(
            has_joins=has_joins,
            has_aggregations=has_aggregations,
            has_filters=has_filters,
            has_order_by=has_order_by,
            table_count=table_count,
            column_count=column_count,
        ),
    )
