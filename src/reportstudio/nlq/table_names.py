"""Rewrites colloquial table references to canonical quoted identifiers."""

from typing import Optional, Sequence, Union

from reportstudio.config_system import TableNameMapping, get_default_rules
from reportstudio.logger import get_logger
from reportstudio.nlq.models import Dialect
from reportstudio.nlq.sql_tokens import (
    is_insignificant,
    is_punct,
    is_word,
    keyword,
    quote_identifier,
    render,
    tokenize,
)

logger = get_logger(__name__)


def _canonical_for(identifier: str, mappings: Sequence[TableNameMapping]) -> Optional[str]:
    for mapping in mappings:
        if mapping.matches(identifier):
            return mapping.canonical
    return None


def normalize_table_names(
    sql: str,
    mappings: Optional[Sequence[TableNameMapping]] = None,
    dialect: Union[Dialect, str] = Dialect.POSTGRESQL,
) -> str:
    """
    Replace bare table names that directly follow FROM or JOIN.

    Only an unquoted, unqualified identifier in that position is considered,
    and it must fully match a mapping pattern. Literals, comments, column
    names and schema-qualified names are left alone.

    Args:
        sql: SQL text
        mappings: Ordered mappings, first match wins (default: configured rules)
        dialect: Controls identifier quoting of the canonical name

    Returns:
        Rewritten SQL
    """
    if mappings is None:
        mappings = get_default_rules().table_name_mappings
    if not mappings or not sql:
        return sql

    tokens = tokenize(sql)
    sig = [i for i, tok in enumerate(tokens) if not is_insignificant(tok)]
    rewrites = 0

    for pos, idx in enumerate(sig[:-1]):
        kw = keyword(tokens[idx])
        if kw is None or not (kw == "FROM" or kw.endswith("JOIN")):
            continue
        target_idx = sig[pos + 1]
        target = tokens[target_idx]
        if not is_word(target) or target.value[:1] in ('"', '`', '['):
            continue
        # schema.table or table(...) is not a bare table reference
        if pos + 2 < len(sig):
            following = tokens[sig[pos + 2]]
            if is_punct(following, ".") or is_punct(following, "("):
                continue
        canonical = _canonical_for(target.value, mappings)
        if canonical is None:
            continue
        target.value = quote_identifier(canonical, dialect)
        rewrites += 1

    if rewrites:
        logger.debug(f"[nlq-tables] normalized {rewrites} table reference(s)")
    return render(tokens)
