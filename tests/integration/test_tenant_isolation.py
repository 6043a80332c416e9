"""
Tenant isolation against a real database.

Secured SQL is executed on a SQLite fixture holding rows for two tenants,
including rows of one tenant that reference the other tenant's accounts.
"""

import pytest
from sqlalchemy import text

from reportstudio.nlq.exceptions import TenantFilterError, UnsafeExecutionError
from reportstudio.nlq.models import NLQResponse
from reportstudio.nlq.tenant_filter import secure_query_for_tenant, validate_tenant_filter

pytestmark = pytest.mark.integration


def run(engine, sql):
    with engine.connect() as conn:
        result = conn.execute(text(sql))
        return [dict(row._mapping) for row in result]


def run_secured(engine, sql, tenant_id, policy):
    secured = secure_query_for_tenant(sql, tenant_id, policy)
    assert validate_tenant_filter(secured, tenant_id, policy).valid
    return run(engine, secured)


class TestTenantIsolation:
    """Only the executing tenant's rows come back."""

    def test_single_table(self, tenant_db, policy):
        sql = "SELECT name FROM \"SalesOpportunity\" WHERE status = 'WON' ORDER BY name"
        assert len(run(tenant_db, sql)) == 3
        assert run_secured(tenant_db, sql, "t1", policy) == [{"name": "Acme renewal"}]
        assert run_secured(tenant_db, sql, "t2", policy) == [
            {"name": "Globex expansion"},
            {"name": "Shadow deal"},
        ]

    def test_inner_join(self, tenant_db, policy):
        sql = (
            'SELECT acc.name AS account_name, opp.name AS deal FROM "SalesAccount" acc '
            'JOIN "SalesOpportunity" opp ON opp."accountId" = acc.id ORDER BY deal'
        )
        rows = run_secured(tenant_db, sql, "t1", policy)
        assert rows == [
            {"account_name": "Acme", "deal": "Acme renewal"},
            {"account_name": "Initech", "deal": "Initech pilot"},
        ]

    def test_left_join_keeps_unmatched_rows(self, tenant_db, policy):
        """Test the other tenant's contact is dropped but the outer join still returns Initech."""
        sql = (
            'SELECT acc.name AS account_name, con.email AS contact_email FROM "SalesAccount" acc '
            'LEFT JOIN "SalesContact" con ON con."accountId" = acc.id ORDER BY acc.name'
        )
        rows = run_secured(tenant_db, sql, "t1", policy)
        assert rows == [
            {"account_name": "Acme", "contact_email": "ann@acme.test"},
            {"account_name": "Initech", "contact_email": None},
        ]

    def test_in_subquery(self, tenant_db, policy):
        sql = (
            'SELECT name FROM "SalesAccount" WHERE id IN '
            "(SELECT \"accountId\" FROM \"SalesOpportunity\" WHERE status = 'WON')"
        )
        assert run_secured(tenant_db, sql, "t1", policy) == [{"name": "Acme"}]
        assert run_secured(tenant_db, sql, "t2", policy) == [{"name": "Globex"}]

    def test_cte_aggregate(self, tenant_db, policy):
        """Test the other tenant's deal on a shared account is not summed."""
        sql = (
            'WITH won AS (SELECT "accountId", SUM(amount) AS won_amount FROM "SalesOpportunity" '
            "WHERE status = 'WON' GROUP BY \"accountId\") "
            'SELECT acc.name, won.won_amount FROM "SalesAccount" acc '
            'JOIN won ON won."accountId" = acc.id'
        )
        rows = run_secured(tenant_db, sql, "t1", policy)
        assert rows == [{"name": "Acme", "won_amount": 1000}]

    def test_union(self, tenant_db, policy):
        sql = 'SELECT name FROM "SalesAccount" UNION SELECT name FROM "SalesOpportunity" ORDER BY 1'
        rows = run_secured(tenant_db, sql, "t1", policy)
        assert [r["name"] for r in rows] == ["Acme", "Acme renewal", "Initech", "Initech pilot"]

    def test_injection_attempt_returns_nothing(self, tenant_db, policy):
        rows = run_secured(tenant_db, 'SELECT name FROM "SalesAccount"', "t1' OR '1'='1", policy)
        assert rows == []

    def test_backslash_literal_cannot_comment_out_predicate(self, tenant_db, policy, executor):
        """Test SQL whose literal ends in a backslash is refused instead of leaking t2 rows."""
        sql = "SELECT name FROM \"SalesOpportunity\" o WHERE o.name = 'x\\' OR 1=1 -- '"
        # SQLite reads the literal as 'x\' and the rest as live SQL
        assert len(run(tenant_db, sql)) == 4

        with pytest.raises(TenantFilterError):
            secure_query_for_tenant(sql, "t1", policy)
        assert validate_tenant_filter(sql, "t1", policy).valid is False

        hidden = sql + " AND o.\"tenantId\" = 't1'"
        assert len(run(tenant_db, hidden)) == 4
        with pytest.raises(UnsafeExecutionError):
            executor.execute(NLQResponse(sql=hidden, confidence=0.9, explanation="ok"), "t1")

    def test_through_executor(self, executor):
        secured = secure_query_for_tenant('SELECT name, amount FROM "SalesOpportunity" ORDER BY name', "t2")
        outcome = executor.execute(NLQResponse(sql=secured, confidence=0.9, explanation="ok"), "t2")
        assert outcome["columns"] == ["name", "amount"]
        assert [r["name"] for r in outcome["rows"]] == ["Globex expansion", "Shadow deal"]
