"""
Data models for natural-language query generation.

All values are request-scoped: they are built per call and discarded once the
response is returned.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

TENANT_PLACEHOLDER = "<TENANT_ID>"


class Dialect(str, Enum):
    """SQL dialects the generator can target."""
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLSERVER = "sqlserver"


class Visualization(str, Enum):
    """Chart types suggested for a result set."""
    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    TABLE = "table"
    SCATTER = "scatter"


class NLQErrorCode(str, Enum):
    """Classified failure tags surfaced in NLQResponse.error."""
    NOT_DATA_QUESTION = "NOT_DATA_QUESTION"
    DANGEROUS_OPERATION = "DANGEROUS_OPERATION"
    TENANT_FILTER_ERROR = "TENANT_FILTER_ERROR"


class FeedbackType(str, Enum):
    """User feedback on a generated query."""
    CORRECT = "correct"
    INCORRECT = "incorrect"
    NEEDS_IMPROVEMENT = "needs_improvement"


@dataclass(frozen=True)
class ColumnDescriptor:
    """A column as described by the catalog service."""
    name: str
    type: str
    description: Optional[str] = None


@dataclass(frozen=True)
class TableDescriptor:
    """A table and its columns."""
    name: str
    columns: Tuple[ColumnDescriptor, ...] = ()


@dataclass(frozen=True)
class SchemaDescriptor:
    """Ordered description of the tables available to a question."""
    tables: Tuple[TableDescriptor, ...] = ()

    @property
    def has_tables(self) -> bool:
        return len(self.tables) > 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SchemaDescriptor":
        """
        Build from the caller's JSON shape.

        Accepts ``{"tables": [{"name": ..., "columns": [{"name", "type", "description"}]}]}``
        or a bare list of table dicts.
        """
        if not data:
            return cls()
        raw_tables = data.get("tables", []) if isinstance(data, dict) else data
        tables = []
        for t in raw_tables or []:
            columns = tuple(
                ColumnDescriptor(
                    name=c["name"],
                    type=c.get("type") or "",
                    description=c.get("description"),
                )
                for c in t.get("columns", []) or []
            )
            tables.append(TableDescriptor(name=t["name"], columns=columns))
        return cls(tables=tuple(tables))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tables": [
                {
                    "name": t.name,
                    "columns": [
                        {"name": c.name, "type": c.type, "description": c.description}
                        for c in t.columns
                    ],
                }
                for t in self.tables
            ]
        }


@dataclass
class NLQRequest:
    """A natural-language question to translate into SQL."""
    question: str
    schema: Optional[SchemaDescriptor] = None
    dialect: Dialect = Dialect.POSTGRESQL
    tenant_id: Optional[str] = None
    data_source_id: Optional[str] = None


@dataclass
class ConfidenceFactors:
    """Structural features extracted from a SQL string."""
    has_joins: bool
    has_aggregations: bool
    has_filters: bool
    has_order_by: bool
    table_count: int
    column_count: int


@dataclass
class ConfidenceScore:
    """Composite confidence for a generated query."""
    overall: float
    schema_match: float
    syntax_valid: bool
    semantic_valid: bool
    complexity_score: float
    factors: ConfidenceFactors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "schemaMatch": self.schema_match,
            "syntaxValid": self.syntax_valid,
            "semanticValid": self.semantic_valid,
            "complexityScore": self.complexity_score,
            "factors": {
                "hasJoins": self.factors.has_joins,
                "hasAggregations": self.factors.has_aggregations,
                "hasFilters": self.factors.has_filters,
                "hasOrderBy": self.factors.has_order_by,
                "tableCount": self.factors.table_count,
                "columnCount": self.factors.column_count,
            },
        }


@dataclass
class NLQResponse:
    """Result of generation or refinement. ``error`` is set whenever ``sql`` must not run."""
    sql: str
    confidence: float
    explanation: str
    suggested_visualization: Optional[Visualization] = None
    confidence_details: Optional[ConfidenceScore] = None
    error: Optional[str] = None

    @property
    def is_executable(self) -> bool:
        return not self.error and bool(self.sql.strip())

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "sql": self.sql,
            "confidence": self.confidence,
            "explanation": self.explanation,
        }
        if self.suggested_visualization is not None:
            out["suggestedVisualization"] = self.suggested_visualization.value
        if self.confidence_details is not None:
            out["confidenceDetails"] = self.confidence_details.to_dict()
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass
class QuerySuggestion:
    """An example question with ready-made SQL."""
    question: str
    sql: str
    confidence: float
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "sql": self.sql,
            "confidence": self.confidence,
            "description": self.description,
        }


@dataclass
class RefinementRequest:
    """Feedback on a previously generated query."""
    original_question: str
    original_sql: str
    user_feedback: Optional[FeedbackType] = None
    corrected_sql: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class QuestionCheck:
    """Outcome of the pre-flight question filter."""
    valid: bool
    reason: Optional[str] = None
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"valid": self.valid}
        if self.reason:
            out["reason"] = self.reason
        if self.suggestion:
            out["suggestion"] = self.suggestion
        return out


@dataclass
class LearningExample:
    """A user correction recorded for later prompt tuning."""
    question: str
    generated_sql: str
    corrected_sql: str
    feedback: str


@dataclass
class TenantFilterReport:
    """Tenant-scoped table references that lack an isolation predicate."""
    valid: bool
    missing: List[str] = field(default_factory=list)
    message: Optional[str] = None
