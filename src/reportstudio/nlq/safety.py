"""Deny-list check for destructive SQL."""

import re
from typing import Optional, Sequence

from reportstudio.config_system import get_default_rules
from reportstudio.logger import get_logger

logger = get_logger(__name__)


def first_denied_keyword(sql: str, keywords: Optional[Sequence[str]] = None) -> Optional[str]:
    if keywords is None:
        keywords = get_default_rules().dangerous_keywords
    for kw in keywords:
        if re.search(r"\b" + re.escape(kw) + r"\b", sql or "", re.IGNORECASE):
            return kw.upper()
    return None


def find_dangerous_keyword(sql: str, keywords: Optional[Sequence[str]] = None) -> Optional[str]:
    """
    Return the first denied keyword found in ``sql``, or None.

    The whole text is scanned, string literals and comments included, and a
    keyword counts as a case-insensitive whole word anywhere in it.

    Args:
        sql: SQL text
        keywords: Deny-list (default: configured rules)
    """
    found = first_denied_keyword(sql, keywords)
    if found:
        logger.warning(f"[nlq-safety] denied keyword found: {found}")
    return found


def is_safe_sql(sql: str, keywords: Optional[Sequence[str]] = None) -> bool:
    return first_denied_keyword(sql, keywords) is None
