"""Query result masks: which result cardinalities a query may produce."""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, model_validator

from sqlcontract.errors import InvalidMaskError


class Cardinality(StrEnum):
    """One acceptable result shape."""

    ONE = "one"
    MANY = "many"
    NONE = "none"


class QueryResultMask(BaseModel):
    """An immutable, validated set of acceptable cardinalities.

    ONE and MANY contradict each other ("exactly one" vs "one or more")
    and an empty set says nothing, so both are rejected at construction
    with ``InvalidMaskError``. Masks combine with ``|``::

        ONE_OR_NONE = ONE | NONE
    """

    model_config = ConfigDict(frozen=True)

    flags: frozenset[Cardinality]

    @model_validator(mode="after")
    def _check_flags(self) -> QueryResultMask:
        if not self.flags:
            raise InvalidMaskError("Query result mask has no flags set", flags=self.flags)
        if Cardinality.ONE in self.flags and Cardinality.MANY in self.flags:
            raise InvalidMaskError(
                "Query result mask cannot contain both 'one' and 'many'", flags=self.flags
            )
        return self

    @classmethod
    def of(cls, *flags: Cardinality | str) -> QueryResultMask:
        """Build a mask from individual flags."""
        try:
            members = frozenset(Cardinality(f) for f in flags)
        except ValueError as exc:
            raise InvalidMaskError(f"Unknown query result mask flag: {exc}", flags=flags) from exc
        return cls(flags=members)

    @classmethod
    def coerce(
        cls, value: QueryResultMask | Cardinality | str | Iterable[Cardinality | str]
    ) -> QueryResultMask:
        """Accept a mask, a single flag, an iterable of flags, or text like ``"one|none"``."""
        if isinstance(value, QueryResultMask):
            return value
        if isinstance(value, Cardinality):
            return cls.of(value)
        if isinstance(value, str):
            return cls.of(*(part.strip() for part in value.split("|")))
        try:
            flags = tuple(value)
        except TypeError as exc:
            raise InvalidMaskError(
                f"Cannot build a query result mask from {type(value).__name__}", flags=value
            ) from exc
        return cls.of(*flags)

    def __or__(self, other: QueryResultMask | Cardinality) -> QueryResultMask:
        other_flags = {other} if isinstance(other, Cardinality) else other.flags
        return QueryResultMask(flags=self.flags | other_flags)

    def __contains__(self, flag: Cardinality) -> bool:
        return flag in self.flags

    @property
    def allows_none(self) -> bool:
        """Whether an empty result satisfies the mask."""
        return Cardinality.NONE in self.flags

    def __str__(self) -> str:
        order = [Cardinality.ONE, Cardinality.MANY, Cardinality.NONE]
        return "|".join(f.value for f in order if f in self.flags)


ONE = QueryResultMask.of(Cardinality.ONE)
MANY = QueryResultMask.of(Cardinality.MANY)
NONE = QueryResultMask.of(Cardinality.NONE)
ONE_OR_NONE = ONE | NONE
MANY_OR_NONE = MANY | NONE
ANY = MANY_OR_NONE
