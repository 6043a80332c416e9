"""Feedback-driven refinement of a previously generated query."""

from typing import TYPE_CHECKING, Optional, Union

from reportstudio.config import settings
from reportstudio.config_system import NLQRules, get_default_rules
from reportstudio.logger import get_logger
from reportstudio.nlq.confidence import calculate_confidence_score
from reportstudio.nlq.exceptions import CompletionError, TenantFilterError
from reportstudio.nlq.generator import (
    dangerous_operation_message,
    strip_code_fences,
    tenant_filter_message,
)
from reportstudio.nlq.models import (
    Dialect,
    LearningExample,
    NLQErrorCode,
    NLQResponse,
    RefinementRequest,
)
from reportstudio.nlq.prompts import build_refinement_messages
from reportstudio.nlq.safety import find_dangerous_keyword
from reportstudio.nlq.tenant_filter import TenantPolicy, resolve_tenant_placeholder

if TYPE_CHECKING:
    from reportstudio.llm.client import CompletionClient

logger = get_logger(__name__)

REFINEMENT_FALLBACK_CONFIDENCE = 0.5


def refine_query(
    request: RefinementRequest,
    client: "CompletionClient",
    tenant_id: Optional[str] = None,
    dialect: Union[Dialect, str] = Dialect.POSTGRESQL,
    rules: Optional[NLQRules] = None,
) -> NLQResponse:
    """
    Ask the model for an improved version of ``request.original_sql``.

    A failed call is not fatal: the original SQL is returned with confidence
    0.5 and the error in the explanation. The refined SQL is scored without
    a schema.

    Args:
        request: Original question/SQL plus the user's feedback
        client: Completion service
        tenant_id: When given, the refined SQL is tenant filtered again
        dialect: Dialect used for the tenant predicate
        rules: Engine rules (default: configured rules)
    """
    rules = rules or get_default_rules()
    try:
        logger.info(f"[nlq-refine] refining query (feedback={request.user_feedback})")
        text = client.complete(
            build_refinement_messages(request),
            temperature=settings.nlq_temperature,
            max_tokens=settings.nlq_max_tokens,
        )
        refined = strip_code_fences(text or "")
        if not refined:
            raise CompletionError("Empty completion returned by the model")

        denied = find_dangerous_keyword(refined, rules.dangerous_keywords)
        if denied:
            return NLQResponse(
                sql=request.original_sql,
                confidence=REFINEMENT_FALLBACK_CONFIDENCE,
                explanation=dangerous_operation_message(denied),
                error=NLQErrorCode.DANGEROUS_OPERATION.value,
            )

        if tenant_id:
            try:
                refined = resolve_tenant_placeholder(
                    refined,
                    tenant_id,
                    policy=TenantPolicy.from_config(rules.tenant_policy),
                    dialect=dialect,
                    placeholder=rules.placeholder,
                )
            except TenantFilterError as e:
                logger.error(f"[nlq-refine] could not secure refined query: {e}")
                return NLQResponse(
                    sql=request.original_sql,
                    confidence=REFINEMENT_FALLBACK_CONFIDENCE,
                    explanation=tenant_filter_message(e),
                    error=NLQErrorCode.TENANT_FILTER_ERROR.value,
                )

        score = calculate_confidence_score(refined, None)
        logger.debug(f"[nlq-refine] refined SQL: {refined}")
        return NLQResponse(
            sql=refined,
            confidence=score.overall,
            explanation="Query refined based on feedback",
            confidence_details=score,
        )

    except Exception as e:
        logger.error(f"[nlq-refine] refinement failed: {e}", exc_info=True)
        return NLQResponse(
            sql=request.original_sql,
            confidence=REFINEMENT_FALLBACK_CONFIDENCE,
            explanation=f"Failed to refine query: {e}",
            error=str(e),
        )


def learn_from_correction(example: LearningExample) -> None:
    """Record a user correction. Only logged; nothing is persisted."""
    logger.info(
        f"[nlq-learn] correction recorded (feedback={example.feedback}) "
        f"for question: {example.question!r}"
    )
    logger.debug(f"[nlq-learn] generated: {example.generated_sql}")
    logger.debug(f"[nlq-learn] corrected: {example.corrected_sql}")
