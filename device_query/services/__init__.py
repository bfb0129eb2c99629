"""Services that talk to the inventory service."""

from .query_executor import QueryExecutor, SubmissionGuard, SubmissionToken, validate_for_query
from .value_catalog import ValueCatalog

__all__ = [
    "QueryExecutor",
    "SubmissionGuard",
    "SubmissionToken",
    "ValueCatalog",
    "validate_for_query"
]
