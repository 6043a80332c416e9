"""Engine rules configuration."""

from .rules_models import (
    NLQRules,
    TableNameMapping,
    TenantPolicyConfig,
    TenantScope,
    SchemaTableConfig,
    SchemaColumnConfig,
)
from .rules_loader import load_rules, get_default_rules, RulesConfigError, DEFAULT_RULES_PATH

__all__ = [
    "NLQRules",
    "TableNameMapping",
    "TenantPolicyConfig",
    "TenantScope",
    "SchemaTableConfig",
    "SchemaColumnConfig",
    "load_rules",
    "get_default_rules",
    "RulesConfigError",
    "DEFAULT_RULES_PATH",
]
