"""Result contract engine.

Checks the number of rows a query returned against the caller's mask and
turns the raw rows into one determinate value. Pure: the same rows and mask
always give the same shape, and the driver's list is never handed out.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlcontract.errors import (
    NoDataError,
    NoDataOrTooManyError,
    TooManyRowsError,
    UnexpectedRowsError,
)
from sqlcontract.models.mask import Cardinality, QueryResultMask
from sqlcontract.models.result import NormalizedResult, Row


def validate(
    rows: Sequence[Row],
    mask: QueryResultMask | Cardinality | str | Iterable[Cardinality | str],
    *,
    query: str | None = None,
) -> NormalizedResult:
    """Validate ``rows`` against ``mask`` and normalize them.

    Raises ``InvalidMaskError`` for a contradictory mask regardless of the
    rows, and a ``QueryResultError`` subclass when the row count does not
    fit. ``query`` is only used to annotate the error.
    """
    mask = QueryResultMask.coerce(mask)
    n = len(rows)

    if Cardinality.ONE in mask:
        if n == 1:
            return NormalizedResult.single(rows[0])
        if n == 0 and mask.allows_none:
            return NormalizedResult.empty()
        if mask.allows_none:
            raise TooManyRowsError(
                f"Expected at most one row, received {n}", received=n, mask=mask, query=query
            )
        raise NoDataOrTooManyError(
            f"Expected exactly one row, received {n}", received=n, mask=mask, query=query
        )

    if Cardinality.MANY in mask:
        if n == 0 and not mask.allows_none:
            raise NoDataError(
                "Expected one or more rows, received none", received=0, mask=mask, query=query
            )
        return NormalizedResult.multiple(rows)

    # NONE only
    if n:
        raise UnexpectedRowsError(
            f"Expected no rows, received {n}", received=n, mask=mask, query=query
        )
    return NormalizedResult.empty()
