"""
SQL generation from natural-language questions.

One completion call per question. The model output is treated as untrusted:
it is unfenced, table names are normalized, the deny-list is applied and,
when a tenant id is known, tenant predicates are injected before anything is
returned. Failures come back as NLQResponse objects with ``error`` set, never
as exceptions.
"""

import re
from typing import TYPE_CHECKING, Optional

from reportstudio.config import settings
from reportstudio.config_system import NLQRules, get_default_rules
from reportstudio.logger import get_logger
from reportstudio.nlq.classifier import is_question_suitable_for_nlq
from reportstudio.nlq.confidence import calculate_confidence_score
from reportstudio.nlq.exceptions import CompletionError, TenantFilterError
from reportstudio.nlq.models import (
    Dialect,
    NLQErrorCode,
    NLQRequest,
    NLQResponse,
    SchemaDescriptor,
)
from reportstudio.nlq.prompts import NOT_DATA_MARKER, build_generation_messages
from reportstudio.nlq.safety import find_dangerous_keyword
from reportstudio.nlq.table_names import normalize_table_names
from reportstudio.nlq.tenant_filter import TenantPolicy, resolve_tenant_placeholder
from reportstudio.nlq.visualization import suggest_visualization

if TYPE_CHECKING:
    from reportstudio.llm.client import CompletionClient

logger = get_logger(__name__)

FENCE_RE = re.compile(r"```(?:sql)?[ \t]*\n?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences around model output."""
    return FENCE_RE.sub("", text or "").strip()


def dangerous_operation_message(keyword: str) -> str:
    return f"Query contains dangerous operation: {keyword}. Only SELECT queries are allowed."


def tenant_filter_message(error: Exception) -> str:
    return f"Failed to secure query: {error}. This query cannot be executed for security reasons."


def _as_schema(schema) -> Optional[SchemaDescriptor]:
    if schema is None or isinstance(schema, SchemaDescriptor):
        return schema
    return SchemaDescriptor.from_dict(schema)


class SQLGenerator:
    """Turns an NLQRequest into a safe, tenant-filtered SQL response."""

    def __init__(
        self,
        client: "CompletionClient",
        rules: Optional[NLQRules] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        precheck: Optional[bool] = None,
    ):
        """
        Args:
            client: Completion service
            rules: Engine rules (default: configured rules)
            temperature: Sampling temperature (default: settings.nlq_temperature)
            max_tokens: Completion budget (default: settings.nlq_max_tokens)
            precheck: Run the question classifier before calling the model
                      (default: settings.precheck_questions)
        """
        self.client = client
        self.rules = rules or get_default_rules()
        self.policy = TenantPolicy.from_config(self.rules.tenant_policy)
        self.temperature = settings.nlq_temperature if temperature is None else temperature
        self.max_tokens = settings.nlq_max_tokens if max_tokens is None else max_tokens
        self.precheck = settings.precheck_questions if precheck is None else precheck

    def generate(self, request: NLQRequest) -> NLQResponse:
        question = request.question or ""
        try:
            if self.precheck:
                check = is_question_suitable_for_nlq(question)
                if not check.valid:
                    logger.warning(f"[nlq-gen] question rejected: {check.reason}")
                    explanation = check.reason or "Question rejected"
                    if check.suggestion:
                        explanation = f"{explanation}. {check.suggestion}"
                    return NLQResponse(
                        sql="",
                        confidence=0.0,
                        explanation=explanation,
                        error=NLQErrorCode.NOT_DATA_QUESTION.value,
                    )

            dialect = Dialect(request.dialect)
            schema = _as_schema(request.schema)
            messages = build_generation_messages(
                question, schema, dialect, request.tenant_id, self.rules
            )

            logger.info(
                f"[nlq-gen] generating SQL (dialect={dialect.value}, "
                f"tables={len(schema.tables) if schema else 0}, tenant={'yes' if request.tenant_id else 'no'})"
            )
            text = (self.client.complete(
                messages, temperature=self.temperature, max_tokens=self.max_tokens
            ) or "").strip()
            if not text:
                raise CompletionError("Empty completion returned by the model")

            if text.upper().startswith("ERROR:") or NOT_DATA_MARKER.upper() in text.upper():
                logger.warning("[nlq-gen] model declined: not a data question")
                return NLQResponse(
                    sql="",
                    confidence=0.0,
                    explanation=text,
                    error=NLQErrorCode.NOT_DATA_QUESTION.value,
                )

            sql = strip_code_fences(text)
            if not sql:
                raise CompletionError("Completion contained no SQL")
            sql = normalize_table_names(sql, self.rules.table_name_mappings, dialect)
            logger.debug(f"[nlq-gen] candidate SQL: {sql}")

            denied = find_dangerous_keyword(sql, self.rules.dangerous_keywords)
            if denied:
                return NLQResponse(
                    sql="",
                    confidence=0.0,
                    explanation=dangerous_operation_message(denied),
                    error=NLQErrorCode.DANGEROUS_OPERATION.value,
                )

            if request.tenant_id:
                try:
                    sql = resolve_tenant_placeholder(
                        sql,
                        request.tenant_id,
                        policy=self.policy,
                        dialect=dialect,
                        placeholder=self.rules.placeholder,
                    )
                except TenantFilterError as e:
                    logger.error(f"[nlq-gen] could not secure query for tenant: {e}")
                    return NLQResponse(
                        sql="",
                        confidence=0.0,
                        explanation=tenant_filter_message(e),
                        error=NLQErrorCode.TENANT_FILTER_ERROR.value,
                    )

            score = calculate_confidence_score(sql, schema)
            logger.info(f"[nlq-gen] SQL ready (confidence={score.overall})")
            return NLQResponse(
                sql=sql,
                confidence=score.overall,
                explanation=f'Generated SQL query for: "{question}"',
                suggested_visualization=suggest_visualization(sql),
                confidence_details=score,
            )

        except Exception as e:
            logger.error(f"[nlq-gen] generation failed: {e}", exc_info=True)
            return NLQResponse(
                sql="",
                confidence=0.0,
                explanation=f"Failed to generate SQL: {e}",
                error=str(e),
            )


def generate_sql_from_nlq(
    request: NLQRequest,
    client: "CompletionClient",
    rules: Optional[NLQRules] = None,
    precheck: Optional[bool] = None,
) -> NLQResponse:
    """Generate SQL for a single question. See SQLGenerator."""
    return SQLGenerator(client, rules=rules, precheck=precheck).generate(request)
