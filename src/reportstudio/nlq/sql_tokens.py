"""
Token-level helpers shared by the SQL rewriting components.

Rewrites work on the sqlparse lexer stream so string literals, comments and
quoted identifiers are never mistaken for keywords.
"""

import re
from typing import List, Optional, Union

from sqlparse import lexer
from sqlparse import tokens as T
from sqlparse.sql import Token

from reportstudio.nlq.models import Dialect

# A string literal token must end at the same quote whether or not the server
# treats backslash as an escape character. sqlparse always does.
STANDARD_STRING_RE = re.compile(r"'(?:''|[^'])*'", re.DOTALL)
BACKSLASH_STRING_RE = re.compile(r"'(?:''|\\.|[^'\\])*'", re.DOTALL)
QUOTED_NAME_RE = re.compile(r'"(?:""|[^"\\])*"', re.DOTALL)


def tokenize(sql: str) -> List[Token]:
    """Lex SQL into leaf tokens. Joining their values reproduces ``sql`` exactly."""
    return [Token(ttype, value) for ttype, value in lexer.tokenize(sql)]


def misread_token(tokens: List[Token], dialect: Union[Dialect, str] = Dialect.POSTGRESQL) -> Optional[str]:
    """
    Describe the first token the database could split differently than sqlparse.

    Covers string literals and quoted names whose end depends on backslash
    handling (PostgreSQL, SQL Server and SQLite read ``'x\\'`` as a complete
    literal, MySQL and E'' strings do not), nested block comments, and the
    MySQL comment forms sqlparse does not lex as comments (``#text``,
    ``/*! ... */``, ``--`` without a following space).

    Returns:
        A short description, or None if every token boundary is unambiguous
    """
    mysql = Dialect(dialect) == Dialect.MYSQL
    for tok in tokens:
        value = tok.value
        if tok.ttype in T.String.Single:
            if not (STANDARD_STRING_RE.fullmatch(value) and BACKSLASH_STRING_RE.fullmatch(value)):
                return f"ambiguous string literal {value[:40]!r}"
        elif tok.ttype in T.String.Symbol:
            if not QUOTED_NAME_RE.fullmatch(value):
                return f"ambiguous quoted name {value[:40]!r}"
        elif tok.ttype in T.Comment.Multiline:
            if "/*" in value[2:] or (mysql and value.startswith("/*!")):
                return "nested or executable block comment"
        elif tok.ttype in T.Comment.Single:
            if mysql and value.startswith("--") and value[2:3] and not value[2:3].isspace():
                return "'--' comment without a following space"
        elif mysql and "#" in value and not value.startswith("`"):
            return "'#' comment"
    return None


def render(tokens: List[Token]) -> str:
    return "".join(tok.value for tok in tokens)


def is_insignificant(tok: Token) -> bool:
    """Whitespace, newlines and comments."""
    return tok.is_whitespace or tok.ttype in T.Comment


def is_word(tok: Token) -> bool:
    """A token that can name a table, alias or column."""
    return (
        tok.ttype in T.Name
        or tok.ttype in T.Keyword
        or tok.ttype in T.String.Symbol
    )


def keyword(tok: Token) -> Optional[str]:
    """Upper-cased keyword text with internal whitespace collapsed, or None."""
    if tok.ttype in T.Keyword:
        return " ".join(tok.value.upper().split())
    return None


def is_punct(tok: Token, value: str) -> bool:
    return tok.ttype in T.Punctuation and tok.value == value


def is_string_literal(tok: Token) -> bool:
    return tok.ttype in T.String.Single


def unquote_identifier(value: str) -> str:
    """Strip identifier quoting: "x", `x` or [x]."""
    if len(value) >= 2:
        if value[0] == '"' and value[-1] == '"':
            return value[1:-1].replace('""', '"')
        if value[0] == '`' and value[-1] == '`':
            return value[1:-1].replace('``', '`')
        if value[0] == '[' and value[-1] == ']':
            return value[1:-1]
    return value


def quote_identifier(name: str, dialect: Union[Dialect, str] = Dialect.POSTGRESQL) -> str:
    """Quote an identifier for the target dialect."""
    dialect = Dialect(dialect)
    if dialect == Dialect.MYSQL:
        return "`" + name.replace("`", "``") + "`"
    if dialect == Dialect.SQLSERVER:
        return "[" + name.replace("]", "]]") + "]"
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str, dialect: Union[Dialect, str] = Dialect.POSTGRESQL) -> str:
    """Single-quoted SQL string literal. MySQL also treats backslash as an escape."""
    if Dialect(dialect) == Dialect.MYSQL:
        value = value.replace("\\", "\\\\")
    return "'" + value.replace("'", "''") + "'"
