from .config import ExecutorSettings
from .errors import (
    ConfirmationTimeoutError,
    ExecutionCancelledError,
    ExecutionError,
    ExecutionRevertedError,
    InsufficientSignaturesError,
    NonceRaceError,
    SignerError,
    StateTransitionError,
    SubmissionFailedError,
)
from .executor import AuthorizedExecutor, PreparedTransaction, build_transaction
from .hashing import safe_tx_hash
from .lifecycle import UnitExecution, UnitState
from .models import (
    ExecutionEvent,
    ExecutionReceipt,
    Signature,
    SignatureRequest,
    SubmissionResult,
    WalletTransaction,
)
from .runner import ProposalRunner, WalletJob, WalletOutcome
from .signing import LocalOwnerSigner, Signer, pack_signatures, recover_signer
from .wallet import WalletClient
from .web3_wallet import Web3SafeWallet

__all__ = [
    "AuthorizedExecutor",
    "ConfirmationTimeoutError",
    "ExecutionCancelledError",
    "ExecutionError",
    "ExecutionEvent",
    "ExecutionReceipt",
    "ExecutionRevertedError",
    "ExecutorSettings",
    "InsufficientSignaturesError",
    "LocalOwnerSigner",
    "NonceRaceError",
    "PreparedTransaction",
    "ProposalRunner",
    "Signature",
    "SignatureRequest",
    "Signer",
    "SignerError",
    "StateTransitionError",
    "SubmissionFailedError",
    "SubmissionResult",
    "UnitExecution",
    "UnitState",
    "WalletClient",
    "WalletJob",
    "WalletOutcome",
    "WalletTransaction",
    "Web3SafeWallet",
    "build_transaction",
    "pack_signatures",
    "recover_signer",
    "safe_tx_hash",
]
