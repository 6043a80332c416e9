from typing import Any, Dict, List
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from reportstudio import __version__
from reportstudio.config import settings
from reportstudio.config_system import get_default_rules
from reportstudio.llm.client import CompletionClient, OpenAICompletionClient
from reportstudio.logger import LoggerManager, bind_request_id, clear_request_id, get_logger
from reportstudio.nlq import (
    Dialect,
    FeedbackType,
    NLQRequest,
    NLQResponse,
    RefinementRequest,
    SchemaDescriptor,
    SQLGenerator,
    UnsafeExecutionError,
    calculate_confidence_score,
    generate_query_suggestions,
    is_question_suitable_for_nlq,
    refine_query,
)
from reportstudio.query_execution import SQLExecutor

logger = get_logger(__name__)

app = FastAPI(title="Reporting Studio NLQ API", version=__version__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ColumnModel(_CamelModel):
    name: str
    type: str = ""
    description: str | None = None


class TableModel(_CamelModel):
    name: str
    columns: List[ColumnModel] = Field(default_factory=list)


class SchemaModel(_CamelModel):
    tables: List[TableModel] = Field(default_factory=list)

    def to_descriptor(self) -> SchemaDescriptor:
        return SchemaDescriptor.from_dict(self.model_dump())


class ValidateRequest(_CamelModel):
    question: str


class GenerateRequest(_CamelModel):
    question: str
    tenant_id: str | None = Field(default=None, alias="tenantId")
    table_schema: SchemaModel | None = Field(default=None, alias="schema")
    dialect: Dialect = Dialect.POSTGRESQL
    data_source_id: str | None = Field(default=None, alias="dataSourceId")
    execute: bool = False


class RefineRequest(_CamelModel):
    original_question: str = Field(alias="originalQuestion")
    original_sql: str = Field(alias="originalSQL")
    user_feedback: FeedbackType | None = Field(default=None, alias="userFeedback")
    corrected_sql: str | None = Field(default=None, alias="correctedSQL")
    error_message: str | None = Field(default=None, alias="errorMessage")
    tenant_id: str | None = Field(default=None, alias="tenantId")
    dialect: Dialect = Dialect.POSTGRESQL


class SuggestionsRequest(_CamelModel):
    table_schema: SchemaModel | None = Field(default=None, alias="schema")
    limit: int = Field(default=5, ge=0, le=50)


class ConfidenceRequest(_CamelModel):
    sql: str
    table_schema: SchemaModel | None = Field(default=None, alias="schema")


# Lazily created collaborators, overridable in tests via app.dependency_overrides
_completion_client: CompletionClient | None = None
_executor: SQLExecutor | None = None


def get_completion_client() -> CompletionClient:
    global _completion_client
    if _completion_client is None:
        _completion_client = OpenAICompletionClient()
    return _completion_client


def get_executor() -> SQLExecutor:
    global _executor
    if _executor is None:
        _executor = SQLExecutor()
    return _executor


def default_schema() -> SchemaDescriptor:
    rules = get_default_rules()
    return SchemaDescriptor.from_dict({"tables": [t.model_dump() for t in rules.default_schema]})


def _schema_or_default(schema: SchemaModel | None) -> SchemaDescriptor:
    if schema is not None and schema.tables:
        return schema.to_descriptor()
    return default_schema()


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or uuid4().hex
    bind_request_id(rid)
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()
    response.headers["X-Request-ID"] = rid
    return response


@app.on_event("startup")
def startup_event() -> None:
    LoggerManager().setup_logging(level=settings.log_level)
    rules = get_default_rules()
    logger.info(
        f"[api] ready: {len(rules.default_schema)} default tables, "
        f"tenant column={rules.tenant_policy.column}"
    )


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/info")
def info() -> Dict[str, Any]:
    return {
        "app": app.title,
        "version": app.version,
        "model": settings.llm_model,
        "dialect": settings.default_dialect,
    }


@app.post("/nlq/validate")
def validate_question(req: ValidateRequest) -> Dict[str, Any]:
    return is_question_suitable_for_nlq(req.question).to_dict()


@app.post("/nlq/generate")
def generate(
    req: GenerateRequest,
    client: CompletionClient = Depends(get_completion_client),
    executor: SQLExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    if not req.question or not req.question.strip():
        raise HTTPException(status_code=400, detail={"error": "Question is required"})

    check = is_question_suitable_for_nlq(req.question)
    if not check.valid:
        raise HTTPException(
            status_code=400,
            detail={
                "error": check.reason or "Question is not suitable for natural language query generation.",
                "suggestion": check.suggestion,
            },
        )

    if not req.tenant_id or not req.tenant_id.strip():
        raise HTTPException(status_code=400, detail={"error": "Tenant ID is required for query generation"})

    logger.info(f"[api] /nlq/generate tenant={req.tenant_id} dialect={req.dialect.value}")
    result = SQLGenerator(client, precheck=False).generate(
        NLQRequest(
            question=req.question,
            schema=_schema_or_default(req.table_schema),
            dialect=req.dialect,
            tenant_id=req.tenant_id,
            data_source_id=req.data_source_id,
        )
    )
    if result.error:
        raise HTTPException(
            status_code=400,
            detail={"error": result.error, "explanation": result.explanation},
        )

    body = result.to_dict()
    if req.execute:
        body.update(_execute(executor, result, req.tenant_id, req.dialect))
    return body


def _execute(executor: SQLExecutor, result: NLQResponse, tenant_id: str, dialect: Dialect) -> Dict[str, Any]:
    if executor.dialect != dialect:
        logger.warning(f"[api] executor dialect {executor.dialect.value} differs from request {dialect.value}")
    try:
        outcome = executor.execute(result, tenant_id)
    except UnsafeExecutionError as e:
        logger.error(f"[api] refused to execute generated SQL: {e}")
        return {"error": "Query execution refused", "executionError": str(e), "rows": [], "columns": [], "rowCount": 0}

    if "error" in outcome:
        return {
            "error": "Query execution failed",
            "executionError": outcome["error"],
            "rows": [],
            "columns": [],
            "rowCount": 0,
        }
    return {
        "columns": outcome["columns"],
        "rows": outcome["rows"],
        "rowCount": outcome["row_count"],
        "truncated": outcome["truncated"],
        "executionTime": outcome["execution_time_ms"],
    }


@app.post("/nlq/refine")
def refine(
    req: RefineRequest,
    client: CompletionClient = Depends(get_completion_client),
) -> Dict[str, Any]:
    if not req.tenant_id or not req.tenant_id.strip():
        raise HTTPException(status_code=400, detail={"error": "Tenant ID is required for query refinement"})

    logger.info(f"[api] /nlq/refine tenant={req.tenant_id} dialect={req.dialect.value}")
    result = refine_query(
        RefinementRequest(
            original_question=req.original_question,
            original_sql=req.original_sql,
            user_feedback=req.user_feedback,
            corrected_sql=req.corrected_sql,
            error_message=req.error_message,
        ),
        client,
        tenant_id=req.tenant_id,
        dialect=req.dialect,
    )
    # refinement failures keep the last good query and stay 200
    return result.to_dict()


@app.post("/nlq/suggestions")
def suggestions(req: SuggestionsRequest) -> Dict[str, Any]:
    items = generate_query_suggestions(_schema_or_default(req.table_schema), req.limit)
    return {"suggestions": [s.to_dict() for s in items]}


@app.post("/nlq/confidence")
def confidence(req: ConfidenceRequest) -> Dict[str, Any]:
    schema = req.table_schema.to_descriptor() if req.table_schema is not None else None
    return calculate_confidence_score(req.sql, schema).to_dict()
