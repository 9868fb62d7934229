"""Errors raised by the data layer."""

from typing import Optional


class DataSourceError(Exception):
    """An upstream data source failed or returned unusable data."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DelegationSourceError(DataSourceError):
    """GraphQL delegation/pool data could not be fetched."""
    pass


class BoostDataError(DataSourceError):
    """Boost weight CSV unreadable or without valid rows."""
    pass


class ChainReadError(DataSourceError):
    """On-chain contract read failed."""
    pass
