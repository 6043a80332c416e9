"""Example questions with ready-made SQL, derived from a schema."""

import re
from typing import Any, Dict, List, Optional, Union

from reportstudio.nlq.models import QuerySuggestion, SchemaDescriptor

NUMERIC_TYPE_RE = re.compile(r"int|decimal|float|numeric|double|real", re.IGNORECASE)
DATE_TYPE_RE = re.compile(r"date|time|timestamp", re.IGNORECASE)

MAX_TABLES = 3
DEFAULT_LIMIT = 5


def generate_query_suggestions(
    schema: Optional[Union[SchemaDescriptor, Dict[str, Any]]],
    limit: int = DEFAULT_LIMIT,
) -> List[QuerySuggestion]:
    """
    Suggest starter queries for the first few tables of a schema.

    Per table: a row count, a capped listing, SUM/AVG over the first numeric
    column and a last-30-days listing on the first date column. The list is
    generated table by table and then cut to ``limit``.
    """
    if isinstance(schema, dict):
        schema = SchemaDescriptor.from_dict(schema)
    if schema is None or not schema.has_tables or limit <= 0:
        return []

    suggestions: List[QuerySuggestion] = []
    for table in schema.tables[:MAX_TABLES]:
        name = table.name
        suggestions.append(QuerySuggestion(
            question=f"How many records are in {name}?",
            sql=f"SELECT COUNT(*) as count FROM {name}",
            confidence=0.95,
            description=f"Count all records in {name}",
        ))
        suggestions.append(QuerySuggestion(
            question=f"Show me all records from {name}",
            sql=f"SELECT * FROM {name} LIMIT 100",
            confidence=0.9,
            description=f"View all records from {name}",
        ))

        numeric = next((c for c in table.columns if c.type and NUMERIC_TYPE_RE.search(c.type)), None)
        if numeric is not None:
            col = numeric.name
            suggestions.append(QuerySuggestion(
                question=f"What is the total of {col} in {name}?",
                sql=f"SELECT SUM({col}) as total FROM {name}",
                confidence=0.85,
                description=f"Sum of {col} column",
            ))
            suggestions.append(QuerySuggestion(
                question=f"What is the average {col} in {name}?",
                sql=f"SELECT AVG({col}) as average FROM {name}",
                confidence=0.85,
                description=f"Average of {col} column",
            ))

        dated = next((c for c in table.columns if c.type and DATE_TYPE_RE.search(c.type)), None)
        if dated is not None:
            col = dated.name
            suggestions.append(QuerySuggestion(
                question=f"Show me records from {name} created in the last 30 days",
                sql=(
                    f"SELECT * FROM {name} WHERE {col} >= CURRENT_DATE - INTERVAL '30 days' "
                    f"ORDER BY {col} DESC"
                ),
                confidence=0.8,
                description=f"Recent records from {name}",
            ))

    return suggestions[:limit]
