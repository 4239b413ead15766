"""Declarative result contracts for async SQL queries."""

from sqlcontract.broker import ConnectionBroker, ConnectionHandle
from sqlcontract.contract import validate
from sqlcontract.database import Database, DirectConnection
from sqlcontract.errors import (
    ConnectionLeaseError,
    ConnectionReleasedError,
    DriverError,
    FormattingError,
    InvalidMaskError,
    NoDataError,
    NoDataOrTooManyError,
    QueryResultError,
    RollbackError,
    SQLContractError,
    TooManyRowsError,
    TransactionClosedError,
    UnexpectedRowsError,
)
from sqlcontract.events import LifecycleEvents, LifecycleObserver, QueryEvent, TransactionEvent
from sqlcontract.library import Library
from sqlcontract.models.config import ConnectionConfig, Dialect, PoolSettings
from sqlcontract.models.mask import (
    ANY,
    MANY,
    MANY_OR_NONE,
    NONE,
    ONE,
    ONE_OR_NONE,
    Cardinality,
    QueryResultMask,
)
from sqlcontract.models.result import NormalizedResult, ResultShape
from sqlcontract.transaction import (
    IsolationLevel,
    TaskContext,
    TransactionContext,
    TransactionMode,
    TransactionState,
)

__all__ = [
    "ANY",
    "MANY",
    "MANY_OR_NONE",
    "NONE",
    "ONE",
    "ONE_OR_NONE",
    "Cardinality",
    "ConnectionBroker",
    "ConnectionConfig",
    "ConnectionHandle",
    "ConnectionLeaseError",
    "ConnectionReleasedError",
    "Database",
    "Dialect",
    "DirectConnection",
    "DriverError",
    "FormattingError",
    "InvalidMaskError",
    "IsolationLevel",
    "Library",
    "LifecycleEvents",
    "LifecycleObserver",
    "NoDataError",
    "NoDataOrTooManyError",
    "NormalizedResult",
    "PoolSettings",
    "QueryEvent",
    "QueryResultError",
    "QueryResultMask",
    "ResultShape",
    "RollbackError",
    "SQLContractError",
    "TaskContext",
    "TooManyRowsError",
    "TransactionClosedError",
    "TransactionContext",
    "TransactionEvent",
    "TransactionMode",
    "TransactionState",
    "UnexpectedRowsError",
    "validate",
]
