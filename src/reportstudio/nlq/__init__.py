"""
Natural-language-to-SQL engine.

Typical use::

    from reportstudio.nlq import NLQRequest, generate_sql_from_nlq

    response = generate_sql_from_nlq(
        NLQRequest(question="How many leads were converted in 2025?", tenant_id="t-1"),
        client,
    )
"""

from .classifier import is_question_suitable_for_nlq
from .confidence import calculate_confidence_score
from .exceptions import CompletionError, NLQError, TenantFilterError, UnsafeExecutionError
from .generator import SQLGenerator, generate_sql_from_nlq
from .models import (
    TENANT_PLACEHOLDER,
    ColumnDescriptor,
    ConfidenceFactors,
    ConfidenceScore,
    Dialect,
    FeedbackType,
    LearningExample,
    NLQErrorCode,
    NLQRequest,
    NLQResponse,
    QuerySuggestion,
    QuestionCheck,
    RefinementRequest,
    SchemaDescriptor,
    TableDescriptor,
    TenantFilterReport,
    Visualization,
)
from .refinement import learn_from_correction, refine_query
from .safety import find_dangerous_keyword, is_safe_sql
from .suggestions import generate_query_suggestions
from .table_names import normalize_table_names
from .tenant_filter import (
    TenantPolicy,
    requires_tenant_filter,
    resolve_tenant_placeholder,
    secure_query_for_tenant,
    validate_tenant_filter,
)
from .visualization import suggest_visualization

__all__ = [
    "TENANT_PLACEHOLDER",
    "ColumnDescriptor",
    "CompletionError",
    "ConfidenceFactors",
    "ConfidenceScore",
    "Dialect",
    "FeedbackType",
    "LearningExample",
    "NLQError",
    "NLQErrorCode",
    "NLQRequest",
    "NLQResponse",
    "QuerySuggestion",
    "QuestionCheck",
    "RefinementRequest",
    "SQLGenerator",
    "SchemaDescriptor",
    "TableDescriptor",
    "TenantFilterError",
    "TenantFilterReport",
    "TenantPolicy",
    "UnsafeExecutionError",
    "Visualization",
    "calculate_confidence_score",
    "find_dangerous_keyword",
    "generate_query_suggestions",
    "generate_sql_from_nlq",
    "is_question_suitable_for_nlq",
    "is_safe_sql",
    "learn_from_correction",
    "normalize_table_names",
    "refine_query",
    "requires_tenant_filter",
    "resolve_tenant_placeholder",
    "secure_query_for_tenant",
    "suggest_visualization",
    "validate_tenant_filter",
]
