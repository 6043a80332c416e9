"""Exceptions raised inside the NLQ engine."""


class NLQError(Exception):
    """Base class for NLQ engine errors."""


class TenantFilterError(NLQError):
    """The tenant filter could not be guaranteed for a query."""


class CompletionError(NLQError):
    """The completion service returned nothing usable."""


class UnsafeExecutionError(NLQError):
    """A caller asked to execute SQL that is not safe to run."""
