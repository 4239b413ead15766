"""Normalized query results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

Row = dict[str, Any]


class ResultShape(StrEnum):
    """Which arm of the mask a result matched."""

    EMPTY = "empty"
    SINGLE = "single"
    MULTIPLE = "multiple"


@dataclass(frozen=True)
class NormalizedResult:
    """The mask-shaped value handed back to the caller.

    ``EMPTY`` carries ``None``, ``SINGLE`` one row, ``MULTIPLE`` a list of
    rows (empty only when the mask allowed NONE).
    """

    shape: ResultShape
    value: Row | list[Row] | None

    @classmethod
    def empty(cls) -> NormalizedResult:
        return cls(ResultShape.EMPTY, None)

    @classmethod
    def single(cls, row: Row) -> NormalizedResult:
        return cls(ResultShape.SINGLE, row)

    @classmethod
    def multiple(cls, rows: list[Row]) -> NormalizedResult:
        return cls(ResultShape.MULTIPLE, list(rows))
