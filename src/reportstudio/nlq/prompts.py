"""
Prompt assembly for SQL generation and refinement.

Schema text, tenant instructions, table-name mappings and the forbidden
statement list are all rendered from data so the prompt stays in step with
the configured rules.
"""

from typing import Dict, List, Optional, Sequence

from reportstudio.config_system import NLQRules, get_default_rules
from reportstudio.nlq.models import (
    TENANT_PLACEHOLDER,
    Dialect,
    FeedbackType,
    RefinementRequest,
    SchemaDescriptor,
)

NOT_DATA_MARKER = "not about application data"

GENERATION_SYSTEM_MESSAGE = (
    "You are a SQL query generation expert for application data queries ONLY. "
    "Always return only valid SQL queries without any explanations or markdown formatting. "
    "Just the raw SQL. Questions about counting, aggregating, or analyzing data "
    '(like "how many", "count", "show me", "list") are valid data questions. '
    'Only return "ERROR: This question is not about application data." for questions '
    "that are clearly about general knowledge, not database queries."
)

REFINEMENT_SYSTEM_MESSAGE = (
    "You are a SQL query refinement expert. Always return only valid SQL queries "
    "without any explanations or markdown formatting."
)

VALID_EXAMPLES = (
    "Show me top 10 customers by revenue",
    "What are the sales by region this quarter?",
    "List all projects with status 'IN_PROGRESS'",
    "Count tasks assigned to each user",
    "Show me deals closed in the last 30 days",
    "What's the pipeline value by stage?",
    "How many leads were converted into opportunities in 2025",
    "How many opportunities were won this month?",
    "Count the number of contacts created last quarter",
)

INVALID_EXAMPLES = (
    "What is artificial intelligence?",
    "How do I cook pasta?",
    "Tell me about history",
    "What's the weather today?",
)

NLQ_PROMPT = """You are a SQL query generation assistant specialized in converting data-related questions into SQL queries. You ONLY work with questions about the application's database.

CRITICAL SECURITY RULE - TENANT ISOLATION:
- ALL queries MUST include "{tenant_column} = '{tenant}'" in the WHERE clause
- This is a multi-tenant application - users can ONLY access their own tenant's data
- NEVER generate queries without {tenant_column} filtering - this would expose other clients' data
- For queries with JOINs, ALL tenant-scoped tables MUST have {tenant_column} filters
- Example: "SELECT * FROM "Project" p JOIN "Task" t ON p.id = t."projectId" WHERE p."{tenant_column}" = '{tenant}' AND t."{tenant_column}" = '{tenant}'"

CRITICAL RULES:
1. ONLY answer questions about data in the application's database (sales, projects, tasks, users, customers, deals, leads, opportunities, accounts, contacts, orders, quotes, activities, etc.)
2. If the question is NOT about application data, return "ERROR: This question is {not_data_marker}. Please ask questions about your data such as sales, projects, customers, tasks, users, deals, leads, opportunities, etc."
3. Generate only valid SELECT queries for data questions
4. Use appropriate table and column names from the schema provided
5. Table names use PascalCase and MUST be quoted ({quote_example}). Common table name mappings:
{mappings}
6. Include proper JOINs when multiple tables are referenced
7. Use aggregate functions (COUNT, SUM, AVG, MAX, MIN) when appropriate
8. Add WHERE clauses for filtering and ORDER BY for sorting when relevant
9. Limit results to reasonable amounts (use a LIMIT clause on unbounded listings)
10. Do NOT include these operations: {forbidden}
11. Do NOT answer general knowledge questions - ONLY data questions
12. Return only the SQL query, no explanations in the query itself

VALID QUESTION EXAMPLES:
{valid_examples}

INVALID QUESTIONS (DO NOT ANSWER):
{invalid_examples}
- General knowledge or advice questions

Schema Context:
{schema_context}

Dialect: {dialect}

Natural Language Question: {question}

If this question is about application data, generate a SQL query. If not, return "ERROR: This question is {not_data_marker}."
Return ONLY the SQL query or ERROR message, nothing else.{tenant_instruction}"""


def build_schema_context(schema: Optional[SchemaDescriptor]) -> str:
    """Render the schema as "Table: T\\nColumns: c (type) - desc, ..." blocks."""
    if schema is None or not schema.has_tables:
        return "No schema provided"
    blocks = []
    for table in schema.tables:
        columns = ", ".join(
            f"{c.name} ({c.type})" + (f" - {c.description}" if c.description else "")
            for c in table.columns
        )
        blocks.append(f"Table: {table.name}\nColumns: {columns}")
    return "\n\n".join(blocks)


def build_tenant_instruction(tenant_id: Optional[str], tenant_column: str = "tenantId",
                             placeholder: str = TENANT_PLACEHOLDER) -> str:
    if tenant_id:
        return (
            f"\n\nTENANT ID: {tenant_id}\n"
            f"You MUST include \"WHERE {tenant_column} = '{tenant_id}'\" in ALL queries. "
            "This is MANDATORY for data security."
        )
    return (
        f"\n\nIMPORTANT: All queries MUST include a {tenant_column} filter in the WHERE clause. "
        f'Use placeholder "{placeholder}" which will be replaced by the system.'
    )


def _quote_example(dialect: Dialect) -> str:
    if dialect == Dialect.MYSQL:
        return "e.g. `SalesLead`, `SalesOpportunity`"
    if dialect == Dialect.SQLSERVER:
        return "e.g. [SalesLead], [SalesOpportunity]"
    return 'e.g. "SalesLead", "SalesOpportunity"'


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f'- "{item}"' for item in items)


def build_generation_prompt(
    question: str,
    schema: Optional[SchemaDescriptor] = None,
    dialect: Dialect = Dialect.POSTGRESQL,
    tenant_id: Optional[str] = None,
    rules: Optional[NLQRules] = None,
) -> str:
    """User prompt for a generation call."""
    rules = rules or get_default_rules()
    dialect = Dialect(dialect)
    column = rules.tenant_policy.column
    mappings = "\n".join(
        f"   - {m.pattern} -> {m.canonical}" for m in rules.table_name_mappings
    ) or "   - (none)"

    return NLQ_PROMPT.format(
        tenant_column=column,
        tenant=tenant_id or rules.placeholder,
        not_data_marker=NOT_DATA_MARKER,
        quote_example=_quote_example(dialect),
        mappings=mappings,
        forbidden=", ".join(rules.dangerous_keywords),
        valid_examples=_bullets(VALID_EXAMPLES),
        invalid_examples=_bullets(INVALID_EXAMPLES),
        schema_context=build_schema_context(schema),
        dialect=dialect.value,
        question=question,
        tenant_instruction=build_tenant_instruction(tenant_id, column, rules.placeholder),
    )


def build_generation_messages(
    question: str,
    schema: Optional[SchemaDescriptor] = None,
    dialect: Dialect = Dialect.POSTGRESQL,
    tenant_id: Optional[str] = None,
    rules: Optional[NLQRules] = None,
) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": GENERATION_SYSTEM_MESSAGE},
        {"role": "user", "content": build_generation_prompt(question, schema, dialect, tenant_id, rules)},
    ]


def build_refinement_prompt(request: RefinementRequest) -> str:
    """Follow-up prompt carrying the original query and the user's feedback."""
    prompt = (
        "You are a SQL query refinement assistant. Refine the following SQL query "
        "based on the context provided.\n\n"
        f'Original Question: "{request.original_question}"\n'
        f"Original SQL: {request.original_sql}\n"
    )

    feedback = FeedbackType(request.user_feedback) if request.user_feedback else None
    if feedback == FeedbackType.INCORRECT and request.error_message:
        prompt += f"\nError: {request.error_message}\nPlease fix the SQL query to resolve this error."
    elif feedback == FeedbackType.NEEDS_IMPROVEMENT and request.corrected_sql:
        prompt += (
            f"\nUser provided corrected SQL: {request.corrected_sql}\n"
            "Please learn from this correction and improve the query generation approach."
        )
    elif feedback == FeedbackType.CORRECT:
        prompt += "\nThe query was correct. Use this as a positive example for future queries."

    prompt += "\n\nGenerate an improved SQL query. Return ONLY the SQL query, no explanations."
    return prompt


def build_refinement_messages(request: RefinementRequest) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": REFINEMENT_SYSTEM_MESSAGE},
        {"role": "user", "content": build_refinement_prompt(request)},
    ]
