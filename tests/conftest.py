"""Pytest configuration and shared fixtures for Reporting Studio NLQ tests."""

from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from reportstudio.config_system import load_rules
from reportstudio.nlq.models import SchemaDescriptor
from reportstudio.nlq.tenant_filter import TenantPolicy
from reportstudio.query_execution import SQLExecutor


@pytest.fixture
def rules():
    """Packaged default rules."""
    return load_rules()


@pytest.fixture
def policy():
    """Every table tenant-scoped, tenant column "tenantId"."""
    return TenantPolicy()


@pytest.fixture
def sample_question():
    """Provide a sample question for testing."""
    return "How many opportunities were won this month?"


@pytest.fixture
def sample_schema_dict():
    """Provide sample schema in the caller's JSON shape."""
    return {
        "tables": [
            {
                "name": "SalesOpportunity",
                "columns": [
                    {"name": "id", "type": "varchar"},
                    {"name": "status", "type": "varchar"},
                    {"name": "amount", "type": "decimal", "description": "Deal value"},
                    {"name": "tenantId", "type": "varchar"},
                    {"name": "createdAt", "type": "timestamp"},
                ],
            },
            {
                "name": "SalesLead",
                "columns": [
                    {"name": "id", "type": "varchar"},
                    {"name": "status", "type": "varchar"},
                    {"name": "tenantId", "type": "varchar"},
                    {"name": "convertedAt", "type": "DateTime"},
                ],
            },
        ]
    }


@pytest.fixture
def sample_schema(sample_schema_dict):
    return SchemaDescriptor.from_dict(sample_schema_dict)


@pytest.fixture
def mock_client():
    """
    Completion client stub.

    Set ``mock_client.complete.return_value`` to the canned model output.
    """
    client = Mock()
    client.complete.return_value = "SELECT 1"
    return client


TENANT_FIXTURE_SQL = [
    'CREATE TABLE "SalesAccount" (id TEXT PRIMARY KEY, "tenantId" TEXT NOT NULL, name TEXT)',
    'CREATE TABLE "SalesContact" (id TEXT PRIMARY KEY, "tenantId" TEXT NOT NULL, '
    '"accountId" TEXT, email TEXT)',
    'CREATE TABLE "SalesOpportunity" (id TEXT PRIMARY KEY, "tenantId" TEXT NOT NULL, '
    '"accountId" TEXT, name TEXT, status TEXT, amount NUMERIC)',
    "INSERT INTO \"SalesAccount\" VALUES ('a1', 't1', 'Acme'), ('a2', 't2', 'Globex'), "
    "('a3', 't1', 'Initech')",
    # c2 and o4 belong to t2 but point at t1's account
    "INSERT INTO \"SalesContact\" VALUES ('c1', 't1', 'a1', 'ann@acme.test'), "
    "('c2', 't2', 'a1', 'spy@globex.test'), ('c3', 't2', 'a2', 'bob@globex.test')",
    "INSERT INTO \"SalesOpportunity\" VALUES "
    "('o1', 't1', 'a1', 'Acme renewal', 'WON', 1000), "
    "('o2', 't1', 'a3', 'Initech pilot', 'OPEN', 250), "
    "('o3', 't2', 'a2', 'Globex expansion', 'WON', 5000), "
    "('o4', 't2', 'a1', 'Shadow deal', 'WON', 999)",
]


@pytest.fixture
def tenant_db():
    """In-memory SQLite engine holding rows for tenants t1 and t2."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        for statement in TENANT_FIXTURE_SQL:
            conn.execute(text(statement))
    yield engine
    engine.dispose()


@pytest.fixture
def executor(tenant_db):
    return SQLExecutor(engine=tenant_db, dialect="postgresql")
