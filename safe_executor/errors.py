"""Failures reported by the authorized executor."""


class ExecutionError(RuntimeError):
    """Base class for failures of a single execution unit."""

    retryable = False


class InsufficientSignaturesError(ExecutionError):
    """Raised when fewer than ``threshold`` valid owner signatures were obtained."""

    def __init__(self, collected: int, threshold: int, detail: str = "") -> None:
        message = f"Collected {collected} of {threshold} required signatures."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)
        self.collected = collected
        self.threshold = threshold


class NonceRaceError(ExecutionError):
    """Raised when the wallet nonce moved between read and submission."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Wallet nonce moved from {expected} to {actual}; rebuild the transaction.")
        self.expected = expected
        self.actual = actual


class ExecutionRevertedError(ExecutionError):
    """Raised when the wallet or a target call reverted.

    ``reason`` carries the revert string exactly as the chain reported it.
    ``nonce_consumed`` is set when the wallet accepted the transaction and
    only the inner call failed.
    """

    def __init__(self, reason: str, nonce_consumed: bool = False) -> None:
        super().__init__(f"Execution reverted: {reason}")
        self.reason = reason
        self.nonce_consumed = nonce_consumed


class SubmissionFailedError(ExecutionError):
    """Raised on transport failure before any on-chain state change."""

    retryable = True


class ConfirmationTimeoutError(ExecutionError):
    """Raised when a sent transaction was not mined in time; its outcome is unknown."""

    def __init__(self, transaction_hash: str) -> None:
        super().__init__(f"No receipt for {transaction_hash}; check the chain before resubmitting.")
        self.transaction_hash = transaction_hash


class ExecutionCancelledError(ExecutionError):
    """Raised when the caller cancelled before submission."""


class SignerError(RuntimeError):
    """Raised when a signer cannot produce a signature."""


class StateTransitionError(ValueError):
    """Raised when a unit lifecycle transition is not allowed."""
