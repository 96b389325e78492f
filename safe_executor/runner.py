"""Sequential execution of a unit sequence, one worker per wallet."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
import threading
from typing import List, Optional, Sequence, Tuple

from batch_grouper.models import ExecutionUnit

from .errors import ExecutionError
from .executor import AuthorizedExecutor
from .models import ExecutionReceipt
from .signing import Signer
from .wallet import WalletClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletJob:
    wallet: WalletClient
    units: Tuple[ExecutionUnit, ...]
    signers: Tuple[Signer, ...]


@dataclass(frozen=True)
class WalletOutcome:
    wallet: str
    receipts: Tuple[ExecutionReceipt, ...]
    error: Optional[ExecutionError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ProposalRunner:
    """Runs units in order; a unit starts only after the previous one is terminal."""

    def __init__(self, executor: Optional[AuthorizedExecutor] = None) -> None:
        self._executor = executor or AuthorizedExecutor()

    def run(
        self,
        wallet: WalletClient,
        units: Sequence[ExecutionUnit],
        signers: Sequence[Signer],
        cancel_event: Optional[threading.Event] = None,
    ) -> Tuple[ExecutionReceipt, ...]:
        receipts: List[ExecutionReceipt] = []
        self._run_into(wallet, units, signers, cancel_event, receipts)
        return tuple(receipts)

    def run_wallets(
        self,
        jobs: Sequence[WalletJob],
        cancel_event: Optional[threading.Event] = None,
    ) -> Tuple[WalletOutcome, ...]:
        """Drive several wallets concurrently; outcomes follow the job order."""
        addresses = [job.wallet.address for job in jobs]
        if len(set(addresses)) != len(addresses):
            raise ValueError("Each wallet may appear in only one job.")
        if not jobs:
            return ()

        with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
            futures = [pool.submit(self._run_job, job, cancel_event) for job in jobs]
            return tuple(future.result() for future in futures)

    def _run_job(self, job: WalletJob, cancel_event: Optional[threading.Event]) -> WalletOutcome:
        receipts: List[ExecutionReceipt] = []
        try:
            self._run_into(job.wallet, job.units, job.signers, cancel_event, receipts)
        except ExecutionError as exc:
            return WalletOutcome(wallet=job.wallet.address, receipts=tuple(receipts), error=exc)
        return WalletOutcome(wallet=job.wallet.address, receipts=tuple(receipts))

    def _run_into(
        self,
        wallet: WalletClient,
        units: Sequence[ExecutionUnit],
        signers: Sequence[Signer],
        cancel_event: Optional[threading.Event],
        receipts: List[ExecutionReceipt],
    ) -> None:
        signers = tuple(signers)
        for index, unit in enumerate(units):
            try:
                receipts.append(self._executor.execute(wallet, unit, signers, cancel_event))
            except ExecutionError:
                logger.warning(
                    "Stopping at unit %s of %s for wallet %s", index + 1, len(units), wallet.address
                )
                raise
