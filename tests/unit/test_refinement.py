"""Tests for the refinement loop."""

import logging

from reportstudio.nlq.models import (
    FeedbackType,
    LearningExample,
    NLQErrorCode,
    RefinementRequest,
)
from reportstudio.nlq.refinement import (
    REFINEMENT_FALLBACK_CONFIDENCE,
    learn_from_correction,
    refine_query,
)

ORIGINAL_SQL = 'SELECT name FROM "SalesLead"'


def make_request(**kwargs):
    kwargs.setdefault("original_question", "List all leads")
    kwargs.setdefault("original_sql", ORIGINAL_SQL)
    return RefinementRequest(**kwargs)


class TestRefineQuery:
    """Tests for refine_query."""

    def test_refined_sql_returned(self, mock_client):
        mock_client.complete.return_value = '```sql\nSELECT name FROM "SalesLead" ORDER BY name\n```'
        result = refine_query(
            make_request(user_feedback=FeedbackType.INCORRECT, error_message="missing ordering"),
            mock_client,
        )

        assert result.sql == 'SELECT name FROM "SalesLead" ORDER BY name'
        assert result.explanation == "Query refined based on feedback"
        assert result.error is None
        # scored without a schema
        assert result.confidence_details.schema_match == 0.5
        assert result.confidence == 0.85

    def test_prompt_carries_feedback(self, mock_client):
        mock_client.complete.return_value = ORIGINAL_SQL
        refine_query(
            make_request(user_feedback=FeedbackType.INCORRECT, error_message='column "nme" does not exist'),
            mock_client,
        )
        messages = mock_client.complete.call_args[0][0]
        assert messages[0]["role"] == "system"
        assert 'Error: column "nme" does not exist' in messages[1]["content"]
        assert f"Original SQL: {ORIGINAL_SQL}" in messages[1]["content"]

    def test_failure_keeps_original_sql(self, mock_client):
        """Test a failed call returns the original SQL with confidence 0.5."""
        mock_client.complete.side_effect = TimeoutError("model timed out")
        result = refine_query(make_request(), mock_client)

        assert result.sql == ORIGINAL_SQL
        assert result.confidence == REFINEMENT_FALLBACK_CONFIDENCE == 0.5
        assert result.explanation == "Failed to refine query: model timed out"
        assert result.error == "model timed out"

    def test_empty_completion_keeps_original_sql(self, mock_client):
        mock_client.complete.return_value = "   "
        result = refine_query(make_request(), mock_client)
        assert result.sql == ORIGINAL_SQL
        assert result.confidence == 0.5

    def test_dangerous_refinement_keeps_original_sql(self, mock_client):
        mock_client.complete.return_value = 'DELETE FROM "SalesLead"'
        result = refine_query(make_request(), mock_client)
        assert result.sql == ORIGINAL_SQL
        assert result.confidence == 0.5
        assert result.error == NLQErrorCode.DANGEROUS_OPERATION.value

    def test_tenant_filter_reapplied(self, mock_client):
        mock_client.complete.return_value = 'SELECT name FROM "SalesLead" ORDER BY name'
        result = refine_query(make_request(), mock_client, tenant_id="t1")
        assert result.sql == (
            "SELECT name FROM \"SalesLead\" WHERE \"SalesLead\".\"tenantId\" = 't1' ORDER BY name"
        )

    def test_tenant_filter_failure_keeps_original(self, mock_client):
        """Test an unsecurable refinement falls back to the last good query."""
        mock_client.complete.return_value = 'SELECT 1; SELECT name FROM "SalesLead"'
        result = refine_query(make_request(), mock_client, tenant_id="t1")
        assert result.sql == ORIGINAL_SQL
        assert result.confidence == REFINEMENT_FALLBACK_CONFIDENCE
        assert result.error == NLQErrorCode.TENANT_FILTER_ERROR.value


class TestLearnFromCorrection:
    """Tests for learn_from_correction."""

    def test_correction_is_logged(self, caplog):
        caplog.set_level(logging.INFO, logger="reportstudio.nlq.refinement")
        learn_from_correction(LearningExample(
            question="List all leads",
            generated_sql=ORIGINAL_SQL,
            corrected_sql='SELECT "firstName" FROM "SalesLead"',
            feedback="needs_improvement",
        ))
        assert "[nlq-learn] correction recorded" in caplog.text
        assert "List all leads" in caplog.text
