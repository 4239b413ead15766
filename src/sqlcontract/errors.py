"""Exception hierarchy.

Every failure surfaces to the caller as one of these (or, inside a
transaction body, as whatever the body itself raised). Driver exceptions
are never leaked bare: they are wrapped in ``DriverError`` with the
original chained as ``__cause__``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlcontract.models.mask import QueryResultMask


class SQLContractError(Exception):
    """Base class for all library errors."""


class InvalidMaskError(SQLContractError):
    """The requested result mask is contradictory or empty.

    Raised before anything is leased or sent to the driver.
    """

    def __init__(self, message: str, flags: Any = None) -> None:
        """Initialize with a message and the offending flags."""
        super().__init__(message)
        self.flags = flags


class QueryResultError(SQLContractError):
    """The query ran, but the number of rows did not match the mask."""

    code = "query_result"

    def __init__(
        self,
        message: str,
        *,
        received: int,
        mask: QueryResultMask,
        query: str | None = None,
    ) -> None:
        """Initialize with the row count received and the mask it broke."""
        super().__init__(message)
        self.received = received
        self.mask = mask
        self.query = query

    def __str__(self) -> str:
        base = super().__str__()
        if self.query is None:
            return base
        return f"{base} (query: {self.query})"


class NoDataError(QueryResultError):
    """At least one row was expected, none came back."""

    code = "no_data"


class NoDataOrTooManyError(QueryResultError):
    """Exactly one row was expected."""

    code = "no_data_or_too_many"


class UnexpectedRowsError(QueryResultError):
    """No rows were expected, some came back."""

    code = "unexpected_rows"


class TooManyRowsError(QueryResultError):
    """At most one row was expected."""

    code = "too_many_rows"


class FormattingError(SQLContractError):
    """A parameter could not be turned into an SQL literal."""


class ConnectionLeaseError(SQLContractError):
    """A connection could not be leased from the pool."""


class ConnectionReleasedError(SQLContractError):
    """A connection handle was used or released after being released."""


class TransactionClosedError(SQLContractError):
    """A query was issued through a task or transaction that already ended."""


class DriverError(SQLContractError):
    """The driver failed to execute a statement."""

    def __init__(self, message: str, *, query: str | None = None) -> None:
        """Initialize with a message and the statement that failed."""
        super().__init__(message)
        self.query = query


class RollbackError(SQLContractError):
    """ROLLBACK failed after an earlier failure.

    Never raised in place of the original error. It is attached to the
    original exception as ``rollback_error``.
    """

    def __init__(self, message: str, *, original: BaseException) -> None:
        """Initialize with a message and the error that triggered the rollback."""
        super().__init__(message)
        self.original = original
