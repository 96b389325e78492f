"""Builds, authorizes, and submits one execution unit against a Safe wallet."""

from dataclasses import dataclass
import logging
import threading
from typing import List, Optional, Sequence, Set

from eth_utils import to_checksum_address

from batch_grouper.models import ExecutionUnit

from .config import ExecutorSettings
from .errors import (
    ExecutionCancelledError,
    ExecutionRevertedError,
    InsufficientSignaturesError,
    NonceRaceError,
    SignerError,
    SubmissionFailedError,
)
from .hashing import safe_tx_hash
from .lifecycle import UnitExecution
from .models import ExecutionReceipt, Signature, SignatureRequest, WalletTransaction
from .signing import Signer, pack_signatures, recover_signer
from .wallet import WalletClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedTransaction:
    """A unit whose transaction is built and carries a quorum of signatures."""

    unit: ExecutionUnit
    wallet: str
    chain_id: int
    transaction: WalletTransaction
    safe_tx_hash: bytes
    execution: UnitExecution


def build_transaction(
    unit: ExecutionUnit, nonce: int, settings: ExecutorSettings
) -> WalletTransaction:
    return WalletTransaction(
        to=unit.target,
        data=unit.data,
        value=unit.value,
        operation=unit.operation,
        safe_tx_gas=settings.safe_tx_gas,
        base_gas=settings.base_gas,
        gas_price=settings.gas_price,
        gas_token=settings.gas_token,
        refund_receiver=settings.refund_receiver,
        nonce=nonce,
    )


class AuthorizedExecutor:
    """Turns execution units into quorum-signed wallet transactions.

    Nothing is retried: every failure is raised to the caller as an
    ``ExecutionError`` subclass and the unit's lifecycle ends there.
    """

    def __init__(self, settings: Optional[ExecutorSettings] = None) -> None:
        self._settings = settings or ExecutorSettings()

    @property
    def settings(self) -> ExecutorSettings:
        return self._settings

    def execute(
        self,
        wallet: WalletClient,
        unit: ExecutionUnit,
        signers: Sequence[Signer],
        cancel_event: Optional[threading.Event] = None,
    ) -> ExecutionReceipt:
        prepared = self.prepare(wallet, unit, signers)
        return self.submit(wallet, prepared, cancel_event)

    def prepare(
        self, wallet: WalletClient, unit: ExecutionUnit, signers: Sequence[Signer]
    ) -> PreparedTransaction:
        chain_id = wallet.chain_id()
        nonce = wallet.nonce()
        threshold = wallet.threshold()
        owners = {to_checksum_address(owner) for owner in wallet.owners()}

        transaction = build_transaction(unit, nonce, self._settings)
        tx_hash = safe_tx_hash(chain_id, wallet.address, transaction)
        execution = UnitExecution(threshold)
        logger.info(
            "Built wallet transaction wallet=%s nonce=%s aggregate=%s members=%s",
            wallet.address,
            nonce,
            unit.is_aggregate,
            unit.member_count,
        )

        request = SignatureRequest(
            wallet=wallet.address,
            chain_id=chain_id,
            transaction=transaction,
            safe_tx_hash=tx_hash,
        )
        rejections = self._collect_signatures(request, signers[:threshold], owners, execution)
        if len(execution.signatures) < threshold:
            execution.cancel()
            raise InsufficientSignaturesError(
                len(execution.signatures), threshold, "; ".join(rejections)
            )

        return PreparedTransaction(
            unit=unit,
            wallet=wallet.address,
            chain_id=chain_id,
            transaction=transaction,
            safe_tx_hash=tx_hash,
            execution=execution,
        )

    def submit(
        self,
        wallet: WalletClient,
        prepared: PreparedTransaction,
        cancel_event: Optional[threading.Event] = None,
    ) -> ExecutionReceipt:
        execution = prepared.execution
        expected_nonce = prepared.transaction.nonce

        if cancel_event is not None and cancel_event.is_set():
            execution.cancel()
            logger.warning(
                "Cancelled before submission wallet=%s nonce=%s", wallet.address, expected_nonce
            )
            raise ExecutionCancelledError("Execution cancelled before submission.")

        try:
            current_nonce = wallet.nonce()
        except SubmissionFailedError:
            execution.cancel()
            logger.warning(
                "Nonce re-read failed before submission wallet=%s nonce=%s",
                wallet.address,
                expected_nonce,
            )
            raise
        if current_nonce != expected_nonce:
            execution.cancel()
            logger.warning(
                "Nonce moved before submission wallet=%s expected=%s actual=%s",
                wallet.address,
                expected_nonce,
                current_nonce,
            )
            raise NonceRaceError(expected_nonce, current_nonce)

        execution.mark_submitted()
        try:
            result = wallet.submit(prepared.transaction, pack_signatures(execution.signatures))
        except SubmissionFailedError:
            execution.mark_failed()
            logger.warning("Submission failed before reaching the chain wallet=%s", wallet.address)
            raise
        except ExecutionRevertedError as exc:
            execution.mark_reverted(exc.reason)
            actual_nonce = None if exc.nonce_consumed else self._nonce_after_rejection(wallet)
            if actual_nonce is not None and actual_nonce != expected_nonce:
                logger.warning(
                    "Rejected on a consumed nonce wallet=%s expected=%s actual=%s",
                    wallet.address,
                    expected_nonce,
                    actual_nonce,
                )
                raise NonceRaceError(expected_nonce, actual_nonce) from exc
            logger.warning(
                "Execution reverted wallet=%s nonce=%s reason=%r",
                wallet.address,
                expected_nonce,
                exc.reason,
            )
            raise

        receipt = ExecutionReceipt(
            wallet=prepared.wallet,
            nonce=expected_nonce,
            safe_tx_hash=prepared.safe_tx_hash,
            transaction_hash=result.transaction_hash,
            is_aggregate=prepared.unit.is_aggregate,
            member_count=prepared.unit.member_count,
            events=result.events,
        )
        execution.mark_confirmed(receipt)
        logger.info(
            "Confirmed wallet transaction wallet=%s nonce=%s tx=%s",
            wallet.address,
            expected_nonce,
            result.transaction_hash,
        )
        return receipt

    def _collect_signatures(
        self,
        request: SignatureRequest,
        signers: Sequence[Signer],
        owners: Set[str],
        execution: UnitExecution,
    ) -> List[str]:
        rejections: List[str] = []
        for signer in signers:
            try:
                signature = signer.sign(request)
                recovered = recover_signer(request.safe_tx_hash, signature.signature_bytes)
            except SignerError as exc:
                rejections.append(str(exc))
                continue
            if recovered not in owners:
                rejections.append(f"{recovered} is not an owner.")
                continue
            if any(existing.signer == recovered for existing in execution.signatures):
                rejections.append(f"{recovered} signed more than once.")
                continue
            execution.add_signature(
                Signature(signer=recovered, signature_bytes=signature.signature_bytes)
            )
            logger.debug(
                "Collected signature from %s (%s/%s)",
                recovered,
                len(execution.signatures),
                execution.threshold,
            )
        return rejections

    def _nonce_after_rejection(self, wallet: WalletClient) -> Optional[int]:
        try:
            return wallet.nonce()
        except SubmissionFailedError:
            return None
