"""Pydantic models for NLQ engine rules."""

import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class TenantScope(str, Enum):
    """Which base tables carry the tenant column."""
    ALL = "all"          # every base table except shared ones
    LISTED = "listed"    # only the tables named in tenant_tables


class TableNameMapping(BaseModel):
    """Colloquial table reference and the canonical identifier it maps to."""
    pattern: str = Field(min_length=1)
    canonical: str = Field(min_length=1)

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid table-name pattern {v!r}: {e}")
        return v

    def matches(self, identifier: str) -> bool:
        return re.fullmatch(self.pattern, identifier, re.IGNORECASE) is not None


class TenantPolicyConfig(BaseModel):
    """Tenant isolation settings."""
    column: str = Field(default="tenantId", min_length=1)
    scope: TenantScope = TenantScope.ALL
    tenant_tables: List[str] = Field(default_factory=list)
    shared_tables: List[str] = Field(default_factory=list)


class SchemaColumnConfig(BaseModel):
    name: str
    type: str
    description: Optional[str] = None


class SchemaTableConfig(BaseModel):
    name: str
    columns: List[SchemaColumnConfig] = Field(default_factory=list)


class NLQRules(BaseModel):
    """Engine rules loaded from YAML."""
    placeholder: str = "<TENANT_ID>"
    table_name_mappings: List[TableNameMapping] = Field(default_factory=list)
    dangerous_keywords: List[str] = Field(default_factory=list)
    tenant_policy: TenantPolicyConfig = Field(default_factory=TenantPolicyConfig)
    default_schema: List[SchemaTableConfig] = Field(default_factory=list)

    @field_validator("dangerous_keywords")
    @classmethod
    def _upper_keywords(cls, v: List[str]) -> List[str]:
        cleaned = [k.strip().upper() for k in v if k and k.strip()]
        if not cleaned:
            raise ValueError("dangerous_keywords must not be empty")
        return cleaned
