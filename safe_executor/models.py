"""Wallet transaction, signature, and receipt models."""

from dataclasses import dataclass
from typing import Tuple

from batch_grouper.models import Operation

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class WalletTransaction:
    """Safe transaction descriptor, bound to one wallet nonce."""

    to: str
    data: bytes
    value: int
    operation: Operation
    safe_tx_gas: int
    base_gas: int
    gas_price: int
    gas_token: str
    refund_receiver: str
    nonce: int


@dataclass(frozen=True)
class SignatureRequest:
    wallet: str
    chain_id: int
    transaction: WalletTransaction
    safe_tx_hash: bytes


@dataclass(frozen=True)
class Signature:
    signer: str
    signature_bytes: bytes


@dataclass(frozen=True)
class ExecutionEvent:
    emitter: str
    name: str
    args: Tuple[object, ...] = ()


@dataclass(frozen=True)
class ExecutionReceipt:
    wallet: str
    nonce: int
    safe_tx_hash: bytes
    transaction_hash: str
    is_aggregate: bool
    member_count: int
    events: Tuple[ExecutionEvent, ...] = ()


@dataclass(frozen=True)
class SubmissionResult:
    transaction_hash: str
    events: Tuple[ExecutionEvent, ...] = ()
