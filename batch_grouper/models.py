"""Domain models for the batch grouper."""

from dataclasses import dataclass
from enum import Enum


class Operation(Enum):
    CALL = 0
    DELEGATE_CALL = 1


@dataclass(frozen=True)
class ElementaryCall:
    """One on-chain call produced by a proposal generator."""

    target: str
    data: bytes
    value: int = 0


@dataclass(frozen=True)
class ExecutionUnit:
    """One top-level wallet transaction: a direct call or an aggregate of calls."""

    target: str
    data: bytes
    value: int
    is_aggregate: bool
    member_count: int

    @property
    def operation(self) -> Operation:
        # Aggregates run in the wallet's own context so inner calls see its balances.
        return Operation.DELEGATE_CALL if self.is_aggregate else Operation.CALL
