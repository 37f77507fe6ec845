"""Query execution package."""

from money_manager.queries.executor import TransactionQueryExecutor

__all__ = ["TransactionQueryExecutor"]
