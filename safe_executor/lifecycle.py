"""Per-unit execution lifecycle with explicit state transitions."""

from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from .errors import StateTransitionError
from .models import ExecutionReceipt, Signature


class UnitState(Enum):
    BUILT = "BUILT"
    SIGNED = "SIGNED"
    AUTHORIZED = "AUTHORIZED"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    REVERTED = "REVERTED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


_TRANSITIONS: Dict[UnitState, FrozenSet[UnitState]] = {
    UnitState.BUILT: frozenset({UnitState.SIGNED, UnitState.AUTHORIZED, UnitState.CANCELLED}),
    UnitState.SIGNED: frozenset({UnitState.SIGNED, UnitState.AUTHORIZED, UnitState.CANCELLED}),
    UnitState.AUTHORIZED: frozenset({UnitState.SUBMITTED, UnitState.CANCELLED}),
    UnitState.SUBMITTED: frozenset({UnitState.CONFIRMED, UnitState.REVERTED, UnitState.FAILED}),
    UnitState.CONFIRMED: frozenset(),
    UnitState.REVERTED: frozenset(),
    UnitState.CANCELLED: frozenset(),
    UnitState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset(
    {UnitState.CONFIRMED, UnitState.REVERTED, UnitState.CANCELLED, UnitState.FAILED}
)


class UnitExecution:
    """Tracks one unit from build to a terminal state."""

    def __init__(self, threshold: int) -> None:
        if threshold < 1:
            raise StateTransitionError("Threshold must be at least 1.")
        self._threshold = threshold
        self._state = UnitState.BUILT
        self._signatures: Tuple[Signature, ...] = ()
        self._receipt: Optional[ExecutionReceipt] = None
        self._revert_reason: Optional[str] = None

    @property
    def state(self) -> UnitState:
        return self._state

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def signatures(self) -> Tuple[Signature, ...]:
        return self._signatures

    @property
    def receipt(self) -> Optional[ExecutionReceipt]:
        return self._receipt

    @property
    def revert_reason(self) -> Optional[str]:
        return self._revert_reason

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def add_signature(self, signature: Signature) -> None:
        if any(existing.signer == signature.signer for existing in self._signatures):
            raise StateTransitionError(f"Duplicate signature from {signature.signer}.")
        collected = len(self._signatures) + 1
        target = UnitState.AUTHORIZED if collected >= self._threshold else UnitState.SIGNED
        self._transition(target)
        self._signatures = self._signatures + (signature,)

    def mark_submitted(self) -> None:
        self._transition(UnitState.SUBMITTED)

    def mark_confirmed(self, receipt: ExecutionReceipt) -> None:
        self._transition(UnitState.CONFIRMED)
        self._receipt = receipt

    def mark_reverted(self, reason: str) -> None:
        self._transition(UnitState.REVERTED)
        self._revert_reason = reason

    def mark_failed(self) -> None:
        self._transition(UnitState.FAILED)

    def cancel(self) -> None:
        self._transition(UnitState.CANCELLED)

    def _transition(self, target: UnitState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise StateTransitionError(
                f"Cannot move unit from {self._state.value} to {target.value}."
            )
        self._state = target
