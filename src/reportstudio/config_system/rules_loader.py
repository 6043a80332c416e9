"""Loads NLQ engine rules from YAML files."""

from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from ..logger import get_logger
from .rules_models import NLQRules

logger = get_logger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent / "default_rules.yaml"


class RulesConfigError(ValueError):
    """Raised when a rules file is missing or invalid."""


def load_rules(path: Optional[Union[str, Path]] = None) -> NLQRules:
    """
    Load and validate engine rules.

    Args:
        path: YAML rules file (default: packaged default_rules.yaml)

    Returns:
        Validated NLQRules
    """
    rules_path = Path(path) if path else DEFAULT_RULES_PATH
    if not rules_path.exists():
        raise RulesConfigError(f"Rules file not found: {rules_path}")

    with open(rules_path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise RulesConfigError(f"Rules file must contain a mapping: {rules_path}")

    try:
        rules = NLQRules(**raw)
    except ValidationError as e:
        raise RulesConfigError(f"Invalid rules in {rules_path}: {e}") from e

    logger.info(
        f"[rules] loaded {rules_path.name}: "
        f"{len(rules.table_name_mappings)} table mappings, "
        f"{len(rules.dangerous_keywords)} denied keywords, "
        f"tenant scope={rules.tenant_policy.scope.value}"
    )
    return rules


@lru_cache(maxsize=1)
def get_default_rules() -> NLQRules:
    """Rules from NLQ_RULES_FILE when set, else the packaged defaults. Loaded once."""
    from ..config import settings

    return load_rules(settings.rules_file or DEFAULT_RULES_PATH)
