"""Chart-type hint for a generated query."""

import re

from reportstudio.nlq.models import Visualization

AGGREGATE_RE = re.compile(r"\b(COUNT|SUM|AVG|MAX|MIN)\s*\(", re.IGNORECASE)
GROUP_BY_RE = re.compile(r"\bGROUP\s+BY\b", re.IGNORECASE)
ORDER_BY_RE = re.compile(r"\bORDER\s+BY\b", re.IGNORECASE)


def suggest_visualization(sql: str) -> Visualization:
    """
    Pick a visualization from the shape of the SQL.

    Aggregates with GROUP BY give a bar chart, a bare aggregate a table,
    an ordered listing a line chart. Anything else is shown as a table.
    """
    sql = sql or ""
    if AGGREGATE_RE.search(sql):
        return Visualization.BAR if GROUP_BY_RE.search(sql) else Visualization.TABLE
    if ORDER_BY_RE.search(sql):
        return Visualization.LINE
    return Visualization.TABLE
