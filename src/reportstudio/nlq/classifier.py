"""
Pre-flight filter for natural-language questions.

Decides, without calling a model, whether free text looks like a question
about application data (sales, projects, tasks, ...) rather than a general
knowledge or chat request.
"""

import re
from typing import List, Pattern

from reportstudio.logger import get_logger
from reportstudio.nlq.models import QuestionCheck

logger = get_logger(__name__)

MIN_QUESTION_LENGTH = 10
MAX_QUESTION_LENGTH = 500

_DATA_EXAMPLES = (
    'Examples: "Show me sales by region" or "List all projects with status IN_PROGRESS"'
)

# Sentence openers that signal a general request rather than a data question
INVALID_OPENERS: List[Pattern[str]] = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r'^how do i',
        r'^tell me how',
        r'^explain',
        r'^what is$',
        r'^who is',
        r'^why',
        r'^when did',
        r'^define',
        r'^what does',
        r'^can you help',
        r'^help me',
        r'^i need help',
        r'^give me advice',
        r'^tell me about',
        r'^write',
        r'^create',
        r'^summarize$',
        r'^translate',
        r"^what's the weather",
        r'^what time',
        r'^what date',
    )
]

# At least one family must match for the question to count as a data question
DATA_KEYWORD_FAMILIES: List[Pattern[str]] = [
    # query verbs
    re.compile(
        r'\b(show|display|list|find|get|select|count|sum|total|average|avg|max|min|top|bottom|'
        r'best|worst|how many|how much)\b',
        re.IGNORECASE,
    ),
    # data nouns
    re.compile(
        r'\b(data|record|table|database|report|metric|stat|statistic|sales|revenue|customer|'
        r'project|task|user|team|budget|deal|lead|opportunity|order|quote|account|contact|'
        r'activity|converted|conversion)\b',
        re.IGNORECASE,
    ),
    # relational / filter keywords
    re.compile(
        r'\b(by|group by|where|filter|sort|order|from|in|during|between|after|before)\b',
        re.IGNORECASE,
    ),
    # temporal tokens, including 4-digit years
    re.compile(r'\b(year|month|quarter|week|day|date|time|period|range|\d{4})\b', re.IGNORECASE),
    # visualization nouns
    re.compile(r'\b(chart|graph|visualization|view|dashboard)\b', re.IGNORECASE),
]

GENERAL_QUESTION_PATTERNS: List[Pattern[str]] = [
    re.compile(
        r'\b(general|knowledge|information|about)\s+(the\s+)?'
        r'(world|internet|history|science|technology|business|market|news)\b',
        re.IGNORECASE,
    ),
    re.compile(
        r'\b(what|how|why)\s+(is|are|do|does|can|will|would)\s+(a|an|the)\s+\w+\s+(that|which|who)\b',
        re.IGNORECASE,
    ),
]


def is_question_suitable_for_nlq(question: str) -> QuestionCheck:
    """
    Check whether a question is a legitimate data question.

    Rules are applied in order and the first failing rule wins: length,
    general-knowledge openers, data keywords, general-question phrasing.

    Args:
        question: Free text from the user

    Returns:
        QuestionCheck with ``valid`` and, when invalid, ``reason`` and ``suggestion``
    """
    text = (question or "").strip()

    if len(text) < MIN_QUESTION_LENGTH or len(text) > MAX_QUESTION_LENGTH:
        return QuestionCheck(
            valid=False,
            reason=f"Question must be between {MIN_QUESTION_LENGTH} and {MAX_QUESTION_LENGTH} characters",
            suggestion="Please ask a more specific question about your data",
        )

    for pattern in INVALID_OPENERS:
        if pattern.search(text):
            logger.debug(f"[nlq-classifier] rejected opener {pattern.pattern!r}")
            return QuestionCheck(
                valid=False,
                reason="This question format is not supported",
                suggestion=f"Please ask questions about your application data. {_DATA_EXAMPLES}",
            )

    if not any(pattern.search(text) for pattern in DATA_KEYWORD_FAMILIES):
        return QuestionCheck(
            valid=False,
            reason="This question does not appear to be about your application data",
            suggestion=(
                "Please ask questions about your data such as sales, projects, customers, tasks, "
                "users, deals, leads, opportunities, accounts, contacts, orders, quotes, or activities. "
                'Examples: "Show me top customers by revenue" or "What are the sales by region?"'
            ),
        )

    for pattern in GENERAL_QUESTION_PATTERNS:
        if pattern.search(text):
            return QuestionCheck(
                valid=False,
                reason="This appears to be a general knowledge question, not a data query",
                suggestion=(
                    "Please ask questions about your application data. This tool is designed to "
                    "query your database, not answer general questions."
                ),
            )

    return QuestionCheck(valid=True)
