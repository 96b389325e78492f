"""Port the executor uses to read and drive a threshold-signature wallet."""

from typing import Protocol, Tuple

from .models import SubmissionResult, WalletTransaction


class WalletClient(Protocol):
    """Live view of one wallet.

    ``submit`` raises ``ExecutionRevertedError`` when the wallet or the target
    reverts and ``SubmissionFailedError`` when the transaction never reached
    the chain.
    """

    @property
    def address(self) -> str:
        ...

    def chain_id(self) -> int:
        ...

    def nonce(self) -> int:
        ...

    def threshold(self) -> int:
        ...

    def owners(self) -> Tuple[str, ...]:
        ...

    def submit(self, transaction: WalletTransaction, signatures: bytes) -> SubmissionResult:
        ...
