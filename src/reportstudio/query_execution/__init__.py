"""Guarded execution of generated SQL."""

from .sql_executor import SQLExecutor, to_json_safe

__all__ = ["SQLExecutor", "to_json_safe"]
