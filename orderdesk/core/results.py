"""
Result types for storage operations.

Expected outcomes (an item that does not exist, stock that would go
negative) are values, not exceptions. Only RetryableFailure is ever
re-attempted by execute_with_retry.
"""
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class Ok:
    value: Any = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class ExpectedFailure:
    kind: str
    message: str
    detail: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True)
class RetryableFailure:
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.error) if self.error else 'Transient storage error'


NOT_FOUND = 'not_found'
INSUFFICIENT_STOCK = 'insufficient_stock'
INVALID = 'invalid'
