"""
Tenant filter injection for model-generated SQL.

Every reference to a tenant-scoped table, at every nesting level, must carry
an equality predicate on the tenant column. The query is lexed with sqlparse
and walked scope by scope:

- WITH bodies, derived tables, set-operation branches and subqueries in any
  clause are visited recursively;
- each SELECT scope collects its FROM/JOIN sources and the top-level AND
  conjuncts of its WHERE (and inner-join ON) clauses;
- a source already covered by ``qualifier.tenantId = '<tid>'`` is left alone,
  otherwise a predicate is appended to the scope's WHERE, or to the ON clause
  for the nullable side of a LEFT JOIN.

Anything the walker cannot place with certainty raises TenantFilterError,
and the rewritten text is analysed again before it is returned. That includes
statements the server could tokenize differently than sqlparse, such as a
string literal ending in a backslash.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple, Union

from sqlparse import tokens as T

from reportstudio.config_system import TenantPolicyConfig, TenantScope, get_default_rules
from reportstudio.logger import get_logger
from reportstudio.nlq.exceptions import TenantFilterError
from reportstudio.nlq.models import TENANT_PLACEHOLDER, Dialect, TenantFilterReport
from reportstudio.nlq.sql_tokens import (
    is_insignificant,
    is_punct,
    is_string_literal,
    is_word,
    misread_token,
    quote_identifier,
    quote_literal,
    tokenize,
    unquote_identifier,
)

logger = get_logger(__name__)

SET_OPERATORS = frozenset({"UNION", "UNION ALL", "INTERSECT", "EXCEPT", "MINUS"})
SELECT_CLAUSES = frozenset({
    "FROM", "WHERE", "GROUP BY", "HAVING", "WINDOW", "ORDER BY",
    "LIMIT", "OFFSET", "FETCH", "FOR", "INTO",
})
QUERY_TAIL = frozenset({"ORDER BY", "LIMIT", "OFFSET", "FETCH"})
INNER_JOINS = frozenset({"JOIN", "INNER JOIN"})
LEFT_JOINS = frozenset({"LEFT JOIN", "LEFT OUTER JOIN"})
NOT_AN_ALIAS = SELECT_CLAUSES | SET_OPERATORS | frozenset({
    "ON", "USING", "AND", "OR", "NOT", "IN", "EXISTS", "SELECT", "VALUES", "SET",
    "LEFT", "RIGHT", "INNER", "OUTER", "FULL", "CROSS", "NATURAL", "LATERAL", "JOIN",
    "GROUP", "ORDER",
})


def _table_key(name: str) -> str:
    return name.lower().replace("_", "")


@dataclass(frozen=True)
class TenantPolicy:
    """Which tables are tenant-scoped and which column holds the tenant id."""
    column: str = "tenantId"
    scope: TenantScope = TenantScope.ALL
    tenant_tables: FrozenSet[str] = frozenset()
    shared_tables: FrozenSet[str] = frozenset()

    @classmethod
    def from_config(cls, cfg: TenantPolicyConfig) -> "TenantPolicy":
        return cls(
            column=cfg.column,
            scope=cfg.scope,
            tenant_tables=frozenset(_table_key(t) for t in cfg.tenant_tables),
            shared_tables=frozenset(_table_key(t) for t in cfg.shared_tables),
        )

    @staticmethod
    def _variants(key: str) -> Tuple[str, ...]:
        # "projects" / "key_results" / "data_catalog_entries" style names
        out = [key]
        if key.endswith("ies"):
            out.append(key[:-3] + "y")
        if key.endswith("es"):
            out.append(key[:-2])
        if key.endswith("s"):
            out.append(key[:-1])
        return tuple(out)

    def _listed(self, key: str, names: FrozenSet[str]) -> bool:
        return any(v in names for v in self._variants(key))

    def is_tenant_scoped(self, table_name: str) -> bool:
        key = _table_key(table_name)
        if self._listed(key, self.shared_tables):
            return False
        if self.scope == TenantScope.ALL:
            return True
        return self._listed(key, self.tenant_tables)


def default_policy() -> TenantPolicy:
    return TenantPolicy.from_config(get_default_rules().tenant_policy)


def requires_tenant_filter(table_name: str, policy: Optional[TenantPolicy] = None) -> bool:
    """True if references to ``table_name`` must be tenant filtered."""

    policy = policy or default_policy()
    return policy.is_tenant_scoped(unquote_identifier(table_name.split(".")[-1]))


@dataclass
class _Source:
    """One FROM/JOIN source inside a SELECT scope."""
    key: str                      # lower-cased unquoted qualifier used for matching
    qualifier: str                # qualifier text to emit, e.g. l or public."Project"
    table: Optional[str] = None   # base table name; None for derived tables, CTEs, functions
    tenant_scoped: bool = False
    on_range: Optional[Tuple[int, int]] = None   # ON clause of a LEFT JOIN's nullable side


@dataclass
class _Injection:
    """Predicates to add to one WHERE/ON range, or a new WHERE after ``anchor``."""
    preds: List[str]
    expr_range: Optional[Tuple[int, int]] = None
    anchor: Optional[int] = None


@dataclass
class _Analysis:
    injections: List[_Injection] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    scopes: int = 0


class _ScopeWalker:
    """Walks one SQL statement; positions are indexes into the significant-token list."""

    def __init__(self, sql: str, tenant_id: str, policy: TenantPolicy, dialect: Dialect):
        self.tokens = tokenize(sql)
        misread = misread_token(self.tokens, dialect)
        if misread:
            raise TenantFilterError(f"Cannot read statement unambiguously: {misread}")
        self.sig = [i for i, tok in enumerate(self.tokens) if not is_insignificant(tok)]
        self.tenant_id = tenant_id
        self.policy = policy
        self.dialect = dialect
        self.literal = quote_literal(tenant_id, dialect)
        self.match: Dict[int, int] = {}
        self.analysis = _Analysis()
        self._match_parens()

    # -- token access -------------------------------------------------

    def tok(self, p: int):
        return self.tokens[self.sig[p]]

    def kw(self, p: int, end: int) -> Optional[str]:
        """
        Upper-cased unquoted word at ``p``, or None.

        sqlparse lexes a keyword written directly before "(" as a name
        ("OR(", "WHERE("), so any unquoted word counts. Words after "." are
        column or table names.
        """
        if p >= end:
            return None
        t = self.tok(p)
        if t.ttype in T.String.Symbol or not is_word(t):
            return None
        if p > 0 and is_punct(self.tok(p - 1), "."):
            return None
        return " ".join(t.value.upper().split())

    def lparen(self, p: int, end: int) -> bool:
        return p < end and is_punct(self.tok(p), "(")

    def _match_parens(self) -> None:
        stack: List[int] = []
        for p in range(len(self.sig)):
            t = self.tok(p)
            if is_punct(t, "("):
                stack.append(p)
            elif is_punct(t, ")"):
                if not stack:
                    raise TenantFilterError("Unbalanced parentheses in query")
                self.match[stack.pop()] = p
        if stack:
            raise TenantFilterError("Unbalanced parentheses in query")

    def top_level(self, start: int, end: int) -> Iterator[int]:
        p = start
        while p < end:
            yield p
            if is_punct(self.tok(p), "("):
                p = self.match[p] + 1
            else:
                p += 1

    # -- statement ----------------------------------------------------

    def walk(self) -> _Analysis:
        n = len(self.sig)
        if n == 0:
            raise TenantFilterError("Empty query")
        end = n
        for p in self.top_level(0, n):
            if is_punct(self.tok(p), ";"):
                end = p
                if any(not is_punct(self.tok(q), ";") for q in range(p + 1, n)):
                    raise TenantFilterError("Multiple statements are not allowed")
                break
        first = self.kw(0, end)
        if first not in ("SELECT", "WITH") and not self.lparen(0, end):
            raise TenantFilterError(f"Only SELECT queries can be secured, got: {self.tok(0).value}")
        self.process_query(0, end, frozenset())
        return self.analysis

    def is_query_group(self, start: int, end: int) -> bool:
        if start >= end:
            return False
        if self.kw(start, end) in ("SELECT", "WITH", "VALUES"):
            return True
        if self.lparen(start, end):
            close = self.match[start]
            if not self.is_query_group(start + 1, close):
                return False
            nxt = close + 1
            return nxt >= end or self.kw(nxt, end) in SET_OPERATORS | QUERY_TAIL
        return False

    def process_query(self, start: int, end: int, ctes: FrozenSet[str]) -> None:
        if start >= end:
            raise TenantFilterError("Empty subquery")
        if self.kw(start, end) == "WITH":
            start, ctes = self.process_with(start, end, ctes)

        branch_start = start
        for p in self.top_level(start, end):
            if self.kw(p, end) in SET_OPERATORS:
                self.process_branch(branch_start, p, ctes)
                branch_start = p + 1
                if self.kw(branch_start, end) in ("ALL", "DISTINCT"):
                    branch_start += 1
        self.process_branch(branch_start, end, ctes)

    def process_with(self, start: int, end: int, ctes: FrozenSet[str]) -> Tuple[int, FrozenSet[str]]:
        p = start + 1
        recursive = self.kw(p, end) == "RECURSIVE"
        if recursive:
            p += 1
        names = set(ctes)
        while True:
            if p >= end or not is_word(self.tok(p)):
                raise TenantFilterError("Malformed WITH clause")
            name = unquote_identifier(self.tok(p).value).lower()
            p += 1
            if self.lparen(p, end):
                p = self.match[p] + 1
            if self.kw(p, end) != "AS":
                raise TenantFilterError("Malformed WITH clause")
            p += 1
            if self.kw(p, end) == "NOT":
                p += 1
            if self.kw(p, end) == "MATERIALIZED":
                p += 1
            if not self.lparen(p, end):
                raise TenantFilterError("Malformed WITH clause")
            close = self.match[p]
            # only a recursive CTE can see its own name in its body
            if recursive:
                names.add(name)
            self.process_query(p + 1, close, frozenset(names))
            names.add(name)
            p = close + 1
            if p < end and is_punct(self.tok(p), ","):
                p += 1
                continue
            break
        if p >= end:
            raise TenantFilterError("WITH clause has no main query")
        return p, frozenset(names)

    def process_branch(self, start: int, end: int, ctes: FrozenSet[str]) -> None:
        if start >= end:
            raise TenantFilterError("Empty set-operation branch")
        if self.lparen(start, end):
            close = self.match[start]
            if not self.is_query_group(start + 1, close):
                raise TenantFilterError("Unsupported parenthesized query")
            self.process_query(start + 1, close, ctes)
            self.scan_expression(close + 1, end, ctes)
            return
        kw = self.kw(start, end)
        if kw == "SELECT":
            self.process_select(start, end, ctes)
        elif kw == "VALUES":
            self.scan_expression(start + 1, end, ctes)
        else:
            raise TenantFilterError(f"Unsupported query structure near: {self.tok(start).value}")

    def scan_expression(self, start: int, end: int, ctes: FrozenSet[str]) -> None:
        """Visit every subquery nested in an expression range."""
        for p in self.top_level(start, end):
            if self.lparen(p, end):
                close = self.match[p]
                if self.is_query_group(p + 1, close):
                    self.process_query(p + 1, close, ctes)
                else:
                    self.scan_expression(p + 1, close, ctes)
            elif self.kw(p, end) in ("SELECT", "WITH"):
                raise TenantFilterError("Unexpected SELECT outside parentheses")

    # -- SELECT scope ---------------------------------------------------

    def _is_operator_from(self, p: int, start: int) -> bool:
        # "a IS [NOT] DISTINCT FROM b"
        return (
            p - 2 >= start
            and self.kw(p - 1, p) == "DISTINCT"
            and self.kw(p - 2, p) in ("IS", "NOT")
        )

    def process_select(self, start: int, end: int, ctes: FrozenSet[str]) -> None:
        self.analysis.scopes += 1
        clauses: List[Tuple[str, int]] = []
        for p in self.top_level(start + 1, end):
            kw = self.kw(p, end)
            if kw in SELECT_CLAUSES and not (kw == "FROM" and self._is_operator_from(p, start)):
                clauses.append((kw, p))

        names = [kw for kw, _ in clauses]
        if "INTO" in names:
            raise TenantFilterError("SELECT ... INTO is not allowed")
        for kw in ("FROM", "WHERE"):
            if names.count(kw) > 1:
                raise TenantFilterError(f"Unexpected repeated {kw} clause")

        bounds: Dict[str, Tuple[int, int]] = {}
        for i, (kw, p) in enumerate(clauses):
            nxt = clauses[i + 1][1] if i + 1 < len(clauses) else end
            bounds.setdefault(kw, (p + 1, nxt))

        select_end = clauses[0][1] if clauses else end
        self.scan_expression(start + 1, select_end, ctes)
        for kw, (a, b) in bounds.items():
            if kw not in ("FROM", "WHERE"):
                self.scan_expression(a, b, ctes)

        if "FROM" not in bounds:
            if "WHERE" in bounds:
                self.scan_expression(*bounds["WHERE"], ctes)
            return

        from_start, from_end = bounds["FROM"]
        sources, inner_on = self.parse_from(from_start, from_end, ctes)

        seen: Dict[str, str] = {}
        for src in sources:
            if src.key in seen:
                raise TenantFilterError(
                    f"Ambiguous table reference {src.qualifier!r}; use distinct aliases"
                )
            seen[src.key] = src.qualifier

        where = bounds.get("WHERE")
        if where is not None:
            if where[0] >= where[1]:
                raise TenantFilterError("Empty WHERE clause")
            self.scan_expression(*where, ctes)

        covered_where = set()
        unqualified_ok = len(sources) == 1
        for rng in ([where] if where else []) + inner_on:
            covered_where |= self.covered_keys(rng, unqualified_ok, sources)

        where_preds: List[str] = []
        for src in sources:
            if not src.tenant_scoped or src.key in covered_where:
                continue
            if src.on_range is not None:
                if src.key in self.covered_keys(src.on_range, False, sources):
                    continue
                self.analysis.injections.append(
                    _Injection(preds=[self.predicate(src)], expr_range=src.on_range)
                )
            else:
                where_preds.append(self.predicate(src))
            self.analysis.missing.append(src.qualifier)

        if where_preds:
            if where is not None:
                self.analysis.injections.append(_Injection(preds=where_preds, expr_range=where))
            else:
                self.analysis.injections.append(_Injection(preds=where_preds, anchor=from_end - 1))

    def predicate(self, src: _Source) -> str:
        column = quote_identifier(self.policy.column, self.dialect)
        return f"{src.qualifier}.{column} = {quote_literal(self.tenant_id, self.dialect)}"

    # -- FROM clause ----------------------------------------------------

    def parse_from(
        self, start: int, end: int, ctes: FrozenSet[str]
    ) -> Tuple[List[_Source], List[Tuple[int, int]]]:
        """Return the sources of a FROM list and the ON ranges of its inner joins."""
        items: List[Tuple[str, int, int]] = []
        kind, item_start = "FROM", start
        for p in self.top_level(start, end):
            if is_punct(self.tok(p), ","):
                items.append((kind, item_start, p))
                kind, item_start = ",", p + 1
                continue
            kw = self.kw(p, end)
            if kw and (kw in ("JOIN", "STRAIGHT_JOIN") or kw.endswith(" JOIN")):
                item_end = p
                if p - 1 >= item_start and self.kw(p - 1, p) == "NATURAL":
                    item_end = p - 1
                    kw = "NATURAL " + kw
                items.append((kind, item_start, item_end))
                kind, item_start = kw, p + 1
        items.append((kind, item_start, end))

        sources: List[_Source] = []
        inner_on: List[Tuple[int, int]] = []
        for kind, a, b in items:
            if a >= b:
                raise TenantFilterError("Missing table reference in FROM clause")
            cond_p = None
            for p in self.top_level(a, b):
                if self.kw(p, b) == "ON" or self.kw(p, b) == "USING":
                    cond_p = p
                    break
            src_end = cond_p if cond_p is not None else b
            item_sources, nested_on = self.parse_source(a, src_end, ctes)
            sources.extend(item_sources)
            inner_on.extend(nested_on)

            if cond_p is None or self.kw(cond_p, b) == "USING":
                continue
            on_range = (cond_p + 1, b)
            if on_range[0] >= on_range[1]:
                raise TenantFilterError("Empty ON clause")
            self.scan_expression(*on_range, ctes)
            if kind in INNER_JOINS:
                inner_on.append(on_range)
            elif kind in LEFT_JOINS and len(item_sources) == 1:
                item_sources[0].on_range = on_range
        return sources, inner_on

    def parse_source(
        self, start: int, end: int, ctes: FrozenSet[str]
    ) -> Tuple[List[_Source], List[Tuple[int, int]]]:
        p = start
        while self.kw(p, end) in ("LATERAL", "ONLY"):
            p += 1
        if p >= end:
            raise TenantFilterError("Missing table reference in FROM clause")

        nested_on: List[Tuple[int, int]] = []
        if self.lparen(p, end):
            close = self.match[p]
            if not self.is_query_group(p + 1, close):
                # parenthesized join group: its sources are filtered in this scope's WHERE
                sources, nested_on = self.parse_from(p + 1, close, ctes)
                for src in sources:
                    src.on_range = None
                p = close + 1
                if p != end:
                    raise TenantFilterError("Unable to parse parenthesized join")
                return sources, nested_on
            self.process_query(p + 1, close, ctes)
            p = close + 1
            alias, p = self.parse_alias(p, end)
            if alias is None:
                raise TenantFilterError("Derived table requires an alias")
            return [_Source(key=unquote_identifier(alias).lower(), qualifier=alias)], nested_on

        if not is_word(self.tok(p)):
            raise TenantFilterError(f"Unable to parse table reference near: {self.tok(p).value}")

        parts = [self.tok(p).value]
        p += 1
        while p + 1 < end and is_punct(self.tok(p), ".") and is_word(self.tok(p + 1)):
            parts.append(self.tok(p + 1).value)
            p += 2
        name_text = ".".join(parts)
        table = unquote_identifier(parts[-1])

        if self.lparen(p, end):
            # table function such as generate_series(...)
            close = self.match[p]
            self.scan_expression(p + 1, close, ctes)
            alias, p = self.parse_alias(close + 1, end)
            self.expect_end(p, end)
            qualifier = alias or parts[-1]
            return [_Source(key=unquote_identifier(qualifier).lower(), qualifier=qualifier)], nested_on

        alias, p = self.parse_alias(p, end)
        self.expect_end(p, end)

        is_cte = len(parts) == 1 and table.lower() in ctes
        qualifier = alias or name_text
        src = _Source(
            key=unquote_identifier(alias).lower() if alias else table.lower(),
            qualifier=qualifier,
            table=None if is_cte else table,
            tenant_scoped=(not is_cte) and self.policy.is_tenant_scoped(table),
        )
        return [src], nested_on

    def parse_alias(self, p: int, end: int) -> Tuple[Optional[str], int]:
        if self.kw(p, end) == "AS":
            p += 1
            if p >= end or not is_word(self.tok(p)):
                raise TenantFilterError("Missing alias after AS")
        alias = None
        if p < end and is_word(self.tok(p)) and self.kw(p, end) != "WITH":
            if self.kw(p, end) in NOT_AN_ALIAS:
                raise TenantFilterError(f"Unexpected keyword in FROM clause: {self.tok(p).value}")
            alias = self.tok(p).value
            p += 1
            if self.lparen(p, end):
                p = self.match[p] + 1  # column alias list
        return alias, p

    def expect_end(self, p: int, end: int) -> None:
        # SQL Server table hints: WITH (NOLOCK)
        if self.kw(p, end) == "WITH" and self.lparen(p + 1, end):
            p = self.match[p + 1] + 1
        if p != end:
            raise TenantFilterError(f"Unable to parse table reference near: {self.tok(p).value}")

    # -- predicates -----------------------------------------------------

    def conjuncts(self, start: int, end: int) -> List[Tuple[int, int]]:
        """Top-level AND conjuncts; the whole range if it has a top-level OR."""
        parts: List[Tuple[int, int]] = []
        part_start = start
        case_depth = 0
        pending_between = False
        for p in self.top_level(start, end):
            kw = self.kw(p, end)
            if kw == "CASE":
                case_depth += 1
            elif kw == "END" and case_depth:
                case_depth -= 1
            elif case_depth:
                continue
            elif kw == "OR":
                return [(start, end)]
            elif kw == "BETWEEN":
                pending_between = True
            elif kw == "AND":
                if pending_between:
                    pending_between = False
                    continue
                parts.append((part_start, p))
                part_start = p + 1
        parts.append((part_start, end))
        return parts

    def has_top_level_or(self, start: int, end: int) -> bool:
        return self.conjuncts(start, end) == [(start, end)] and any(
            self.kw(p, end) == "OR" for p in self.top_level(start, end)
        )

    def _column_ref(self, start: int, end: int) -> Optional[List[str]]:
        if start >= end or not is_word(self.tok(start)):
            return None
        parts = [unquote_identifier(self.tok(start).value)]
        p = start + 1
        while p + 1 < end and is_punct(self.tok(p), ".") and is_word(self.tok(p + 1)):
            parts.append(unquote_identifier(self.tok(p + 1).value))
            p += 2
        return parts if p == end else None

    def tenant_predicate_qualifier(self, start: int, end: int) -> Tuple[bool, Optional[str]]:
        """(is tenant predicate, lower-cased qualifier or None)."""
        while self.lparen(start, end) and self.match[start] == end - 1:
            start, end = start + 1, end - 1
        eq = None
        for p in range(start, end):
            t = self.tok(p)
            if t.ttype in T.Operator.Comparison and t.value == "=":
                eq = p
                break
        if eq is None or eq - start < 1 or end - eq < 2:
            return False, None
        left, right = (start, eq), (eq + 1, end)
        for col_rng, lit_rng in ((left, right), (right, left)):
            if lit_rng[1] - lit_rng[0] != 1:
                continue
            lit = self.tok(lit_rng[0])
            if not is_string_literal(lit) or lit.value != self.literal:
                continue
            parts = self._column_ref(*col_rng)
            if not parts or parts[-1].lower() != self.policy.column.lower():
                continue
            return True, (parts[-2].lower() if len(parts) > 1 else None)
        return False, None

    def covered_keys(
        self, rng: Tuple[int, int], unqualified_ok: bool, sources: Sequence[_Source]
    ) -> set:
        keys = set()
        for a, b in self.conjuncts(*rng):
            ok, qualifier = self.tenant_predicate_qualifier(a, b)
            if not ok:
                continue
            if qualifier is None:
                if unqualified_ok:
                    keys.add(sources[0].key)
                continue
            for src in sources:
                if src.key == qualifier:
                    keys.add(src.key)
        return keys

    # -- rendering ------------------------------------------------------

    def render(self) -> str:
        before: Dict[int, List[str]] = defaultdict(list)
        after: Dict[int, List[str]] = defaultdict(list)
        for inj in self.analysis.injections:
            joined = " AND ".join(inj.preds)
            if inj.expr_range is not None:
                a, b = inj.expr_range
                last = self.sig[b - 1]
                if self.has_top_level_or(a, b):
                    before[self.sig[a]].append("(")
                    after[last].append(")")
                after[last].append(f" AND {joined}")
            else:
                after[self.sig[inj.anchor]].append(f" WHERE {joined}")

        out = []
        for i, tok in enumerate(self.tokens):
            out.extend(before.get(i, ()))
            out.append(tok.value)
            out.extend(after.get(i, ()))
        return "".join(out)


def _check_tenant_id(tenant_id: Optional[str]) -> str:
    if tenant_id is None or not str(tenant_id).strip():
        raise TenantFilterError("A tenant id is required to secure a query")
    return str(tenant_id)


def secure_query_for_tenant(
    sql: str,
    tenant_id: str,
    policy: Optional[TenantPolicy] = None,
    dialect: Union[Dialect, str] = Dialect.POSTGRESQL,
) -> str:
    """
    Add tenant predicates to every tenant-scoped table reference in ``sql``.

    Already-filtered references are left alone, so securing a secured query
    returns it unchanged.

    Args:
        sql: A single SELECT (or WITH ... SELECT) statement
        tenant_id: Tenant whose rows may be returned
        policy: Tenant policy (default: configured rules)
        dialect: Controls identifier quoting of the tenant column

    Returns:
        SQL in which every tenant-scoped reference is filtered

    Raises:
        TenantFilterError: If the statement cannot be secured with certainty
    """
    tenant_id = _check_tenant_id(tenant_id)
    policy = policy or default_policy()
    dialect = Dialect(dialect)

    walker = _ScopeWalker(sql, tenant_id, policy, dialect)
    analysis = walker.walk()
    if not analysis.injections:
        logger.debug(f"[tenant-filter] all references already filtered ({analysis.scopes} scope(s))")
        return sql

    secured = walker.render()
    recheck = _ScopeWalker(secured, tenant_id, policy, dialect).walk()
    if recheck.missing:
        logger.error(f"[tenant-filter] verification failed for: {', '.join(recheck.missing)}")
        raise TenantFilterError(
            f"Could not verify tenant filter for: {', '.join(recheck.missing)}"
        )

    logger.info(
        f"[tenant-filter] added {len(analysis.missing)} predicate(s) "
        f"across {analysis.scopes} scope(s): {', '.join(analysis.missing)}"
    )
    return secured


def validate_tenant_filter(
    sql: str,
    tenant_id: str,
    policy: Optional[TenantPolicy] = None,
    dialect: Union[Dialect, str] = Dialect.POSTGRESQL,
) -> TenantFilterReport:
    """Report tenant-scoped references in ``sql`` that lack a tenant predicate."""
    try:
        tenant_id = _check_tenant_id(tenant_id)
        analysis = _ScopeWalker(sql, tenant_id, policy or default_policy(), Dialect(dialect)).walk()
    except TenantFilterError as e:
        return TenantFilterReport(valid=False, message=str(e))

    if analysis.missing:
        return TenantFilterReport(
            valid=False,
            missing=list(analysis.missing),
            message=f"Missing tenant filter for: {', '.join(analysis.missing)}",
        )
    return TenantFilterReport(valid=True)


def resolve_tenant_placeholder(
    sql: str,
    tenant_id: str,
    policy: Optional[TenantPolicy] = None,
    dialect: Union[Dialect, str] = Dialect.POSTGRESQL,
    placeholder: str = TENANT_PLACEHOLDER,
) -> str:
    """
    Substitute the tenant placeholder with the real tenant id, then secure.

    ``'<TENANT_ID>'`` literals become the quoted tenant id, and so do bare
    occurrences outside string literals.
    """
    tenant_id = _check_tenant_id(tenant_id)
    literal = quote_literal(tenant_id, dialect)
    quoted_placeholder = quote_literal(placeholder)

    out: List[str] = []
    run: List[str] = []
    for tok in tokenize(sql):
        if is_string_literal(tok):
            out.append("".join(run).replace(placeholder, literal))
            run = []
            out.append(literal if tok.value == quoted_placeholder else tok.value)
        else:
            run.append(tok.value)
    out.append("".join(run).replace(placeholder, literal))

    return secure_query_for_tenant("".join(out), tenant_id, policy=policy, dialect=dialect)
