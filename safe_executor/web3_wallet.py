"""Wallet client for a deployed Safe, driven through web3.py."""

import logging
from typing import Any, Dict, Optional, Tuple

from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.logs import DISCARD

from batch_grouper.models import Operation

from .config import ExecutorSettings
from .errors import ConfirmationTimeoutError, ExecutionRevertedError, SubmissionFailedError
from .models import ExecutionEvent, SubmissionResult, WalletTransaction

logger = logging.getLogger(__name__)

# Safe reverts with this code when the inner call failed and no gas refund is configured.
INNER_CALL_FAILED = "GS013"

_REVERT_PREFIX = "execution reverted: "

SAFE_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "value", "type": "uint256"},
            {"internalType": "bytes", "name": "data", "type": "bytes"},
            {"internalType": "uint8", "name": "operation", "type": "uint8"},
            {"internalType": "uint256", "name": "safeTxGas", "type": "uint256"},
            {"internalType": "uint256", "name": "baseGas", "type": "uint256"},
            {"internalType": "uint256", "name": "gasPrice", "type": "uint256"},
            {"internalType": "address", "name": "gasToken", "type": "address"},
            {"internalType": "address payable", "name": "refundReceiver", "type": "address"},
            {"internalType": "bytes", "name": "signatures", "type": "bytes"},
        ],
        "name": "execTransaction",
        "outputs": [{"internalType": "bool", "name": "success", "type": "bool"}],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "nonce",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getOwners",
        "outputs": [{"internalType": "address[]", "name": "", "type": "address[]"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getThreshold",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "bytes32", "name": "txHash", "type": "bytes32"},
            {"indexed": False, "internalType": "uint256", "name": "payment", "type": "uint256"},
        ],
        "name": "ExecutionFailure",
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "bytes32", "name": "txHash", "type": "bytes32"},
            {"indexed": False, "internalType": "uint256", "name": "payment", "type": "uint256"},
        ],
        "name": "ExecutionSuccess",
        "type": "event",
    },
]


class Web3SafeWallet:
    """Reads Safe state and sends ``execTransaction`` from a local submitter account."""

    def __init__(
        self,
        w3: Web3,
        address: str,
        submitter: LocalAccount,
        settings: Optional[ExecutorSettings] = None,
    ) -> None:
        self._w3 = w3
        self._address = Web3.to_checksum_address(address)
        self._submitter = submitter
        self._settings = settings or ExecutorSettings()
        self._contract = w3.eth.contract(address=self._address, abi=SAFE_ABI)

    @classmethod
    def from_settings(
        cls, settings: ExecutorSettings, address: str, submitter: LocalAccount
    ) -> "Web3SafeWallet":
        if not settings.rpc_url:
            raise ValueError("rpc_url is required to connect to a Safe.")
        return cls(Web3(Web3.HTTPProvider(settings.rpc_url)), address, submitter, settings)

    @property
    def address(self) -> str:
        return self._address

    def chain_id(self) -> int:
        return self._read(lambda: self._w3.eth.chain_id)

    def nonce(self) -> int:
        return self._read(lambda: self._contract.functions.nonce().call())

    def threshold(self) -> int:
        return self._read(lambda: self._contract.functions.getThreshold().call())

    def owners(self) -> Tuple[str, ...]:
        owners = self._read(lambda: self._contract.functions.getOwners().call())
        return tuple(Web3.to_checksum_address(owner) for owner in owners)

    def submit(self, transaction: WalletTransaction, signatures: bytes) -> SubmissionResult:
        call = self._contract.functions.execTransaction(
            Web3.to_checksum_address(transaction.to),
            transaction.value,
            transaction.data,
            transaction.operation.value,
            transaction.safe_tx_gas,
            transaction.base_gas,
            transaction.gas_price,
            Web3.to_checksum_address(transaction.gas_token),
            Web3.to_checksum_address(transaction.refund_receiver),
            signatures,
        )
        try:
            tx_params = call.build_transaction(
                {
                    "from": self._submitter.address,
                    "nonce": self._w3.eth.get_transaction_count(self._submitter.address, "pending"),
                }
            )
        except ContractLogicError as exc:
            raise ExecutionRevertedError(self._reason_for(exc, transaction)) from exc
        except (OSError, Web3Exception) as exc:
            raise SubmissionFailedError(f"Could not prepare execTransaction: {exc}") from exc

        signed = self._submitter.sign_transaction(tx_params)
        try:
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except ContractLogicError as exc:
            raise ExecutionRevertedError(self._reason_for(exc, transaction)) from exc
        except (OSError, Web3Exception) as exc:
            raise SubmissionFailedError(f"Could not send execTransaction: {exc}") from exc

        tx_hash_hex = HexBytes(tx_hash).to_0x_hex()
        logger.info("Sent execTransaction %s for Safe %s", tx_hash_hex, self._address)
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._settings.receipt_timeout
            )
        except TimeExhausted as exc:
            raise ConfirmationTimeoutError(tx_hash_hex) from exc

        if receipt["status"] != 1:
            raise ExecutionRevertedError(self._replay_reason(tx_params, receipt["blockNumber"]))
        failures = self._contract.events.ExecutionFailure().process_receipt(receipt, errors=DISCARD)
        if failures:
            reason = self._inner_reason(transaction, receipt["blockNumber"]) or "ExecutionFailure"
            raise ExecutionRevertedError(reason, nonce_consumed=True)

        events = tuple(
            ExecutionEvent(emitter=log["address"], name=log["event"], args=tuple(log["args"].values()))
            for log in self._contract.events.ExecutionSuccess().process_receipt(receipt, errors=DISCARD)
        )
        return SubmissionResult(transaction_hash=tx_hash_hex, events=events)

    def _read(self, fetch):
        try:
            return fetch()
        except (OSError, Web3Exception) as exc:
            raise SubmissionFailedError(f"Could not read Safe {self._address}: {exc}") from exc

    def _reason_for(self, exc: ContractLogicError, transaction: WalletTransaction) -> str:
        reason = _revert_reason(exc)
        if reason == INNER_CALL_FAILED:
            return self._inner_reason(transaction, "latest") or reason
        return reason

    def _inner_reason(self, transaction: WalletTransaction, block: Any) -> Optional[str]:
        """Replay a plain inner call from the Safe to recover the target's own revert reason."""
        if transaction.operation != Operation.CALL:
            return None
        params: Dict[str, Any] = {
            "from": self._address,
            "to": Web3.to_checksum_address(transaction.to),
            "data": transaction.data,
            "value": transaction.value,
        }
        try:
            self._w3.eth.call(params, block)
        except ContractLogicError as exc:
            return _revert_reason(exc)
        except (OSError, Web3Exception) as exc:
            logger.debug("Inner call replay failed: %s", exc)
        return None

    def _replay_reason(self, tx_params: Dict[str, Any], block_number: int) -> str:
        params = {key: tx_params[key] for key in ("from", "to", "data", "value") if key in tx_params}
        try:
            self._w3.eth.call(params, block_number - 1)
        except ContractLogicError as exc:
            return _revert_reason(exc)
        except (OSError, Web3Exception) as exc:
            logger.debug("Transaction replay failed: %s", exc)
        return "execution reverted"


def _revert_reason(exc: ContractLogicError) -> str:
    message = getattr(exc, "message", None) or str(exc)
    if message.startswith(_REVERT_PREFIX):
        return message[len(_REVERT_PREFIX) :]
    return message
