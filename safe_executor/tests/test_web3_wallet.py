"""Web3-backed Safe client tests against a mocked provider."""

import unittest
from unittest.mock import MagicMock

from eth_account import Account
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

import safe_executor
from batch_grouper.models import Operation
from safe_executor.config import ExecutorSettings
from safe_executor.errors import (
    ConfirmationTimeoutError,
    ExecutionRevertedError,
    SubmissionFailedError,
)
from safe_executor.models import ZERO_ADDRESS, WalletTransaction
from safe_executor.web3_wallet import Web3SafeWallet

SAFE = "0x" + "5a" * 20
TARGET = "0x" + "c0" * 20
TX_HASH = HexBytes(b"\x12" * 32)


def _transaction(operation: Operation = Operation.CALL) -> WalletTransaction:
    return WalletTransaction(
        to=TARGET,
        data=b"\xde\xad\xbe\xef",
        value=0,
        operation=operation,
        safe_tx_gas=0,
        base_gas=0,
        gas_price=0,
        gas_token=ZERO_ADDRESS,
        refund_receiver=ZERO_ADDRESS,
        nonce=3,
    )


class Web3SafeWalletTests(unittest.TestCase):
    def setUp(self) -> None:
        self.w3 = MagicMock()
        self.contract = self.w3.eth.contract.return_value
        self.submitter = Account.from_key("0x" + f"{42:064x}")
        self.wallet = Web3SafeWallet(
            self.w3, SAFE, self.submitter, ExecutorSettings(receipt_timeout=5)
        )
        self.exec_call = self.contract.functions.execTransaction.return_value
        self.exec_call.build_transaction.return_value = {
            "to": self.wallet.address,
            "value": 0,
            "gas": 200_000,
            "gasPrice": 1,
            "nonce": 0,
            "chainId": 1,
            "data": "0x6a761202",
        }
        self.w3.eth.send_raw_transaction.return_value = TX_HASH
        self.w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 10}
        self.contract.events.ExecutionFailure.return_value.process_receipt.return_value = []
        self.contract.events.ExecutionSuccess.return_value.process_receipt.return_value = [
            {
                "address": self.wallet.address,
                "event": "ExecutionSuccess",
                "args": {"txHash": b"\x01" * 32, "payment": 0},
            }
        ]

    def test_reads_safe_state(self) -> None:
        self.contract.functions.nonce.return_value.call.return_value = 7
        self.contract.functions.getThreshold.return_value.call.return_value = 2
        self.contract.functions.getOwners.return_value.call.return_value = [TARGET]

        self.assertEqual(self.wallet.nonce(), 7)
        self.assertEqual(self.wallet.threshold(), 2)
        self.assertEqual(self.wallet.owners(), (Web3.to_checksum_address(TARGET),))

    def test_transport_errors_are_retryable(self) -> None:
        self.contract.functions.nonce.return_value.call.side_effect = ConnectionError("refused")

        with self.assertRaises(SubmissionFailedError) as context:
            self.wallet.nonce()
        self.assertTrue(context.exception.retryable)

    def test_successful_submission(self) -> None:
        result = self.wallet.submit(_transaction(), b"\x00" * 65)

        self.assertEqual(result.transaction_hash, "0x" + "12" * 32)
        (event,) = result.events
        self.assertEqual(event.name, "ExecutionSuccess")
        self.assertEqual(event.emitter, self.wallet.address)
        self.w3.eth.send_raw_transaction.assert_called_once()
        self.w3.eth.wait_for_transaction_receipt.assert_called_once_with(TX_HASH, timeout=5)

    def test_safe_revert_code_is_passed_through(self) -> None:
        self.exec_call.build_transaction.side_effect = ContractLogicError(
            "execution reverted: GS026"
        )

        with self.assertRaises(ExecutionRevertedError) as context:
            self.wallet.submit(_transaction(), b"\x00" * 65)

        self.assertEqual(context.exception.reason, "GS026")
        self.assertFalse(context.exception.nonce_consumed)
        self.w3.eth.send_raw_transaction.assert_not_called()

    def test_inner_call_failure_is_replayed_for_reason(self) -> None:
        self.exec_call.build_transaction.side_effect = ContractLogicError(
            "execution reverted: GS013"
        )
        self.w3.eth.call.side_effect = ContractLogicError(
            "execution reverted: Target: custom precondition not met"
        )

        with self.assertRaises(ExecutionRevertedError) as context:
            self.wallet.submit(_transaction(), b"\x00" * 65)

        self.assertEqual(context.exception.reason, "Target: custom precondition not met")
        params, block = self.w3.eth.call.call_args[0]
        self.assertEqual(params["from"], self.wallet.address)
        self.assertEqual(block, "latest")

    def test_aggregate_inner_failure_keeps_safe_code(self) -> None:
        self.exec_call.build_transaction.side_effect = ContractLogicError(
            "execution reverted: GS013"
        )

        with self.assertRaises(ExecutionRevertedError) as context:
            self.wallet.submit(_transaction(Operation.DELEGATE_CALL), b"\x00" * 65)

        self.assertEqual(context.exception.reason, "GS013")
        self.w3.eth.call.assert_not_called()

    def test_mined_revert_is_replayed_at_previous_block(self) -> None:
        self.w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 10}
        self.w3.eth.call.side_effect = ContractLogicError("execution reverted: GS026")

        with self.assertRaises(ExecutionRevertedError) as context:
            self.wallet.submit(_transaction(), b"\x00" * 65)

        self.assertEqual(context.exception.reason, "GS026")
        self.assertEqual(self.w3.eth.call.call_args[0][1], 9)

    def test_execution_failure_event_consumes_nonce(self) -> None:
        self.contract.events.ExecutionFailure.return_value.process_receipt.return_value = [
            {"address": self.wallet.address, "event": "ExecutionFailure", "args": {}}
        ]
        self.w3.eth.call.side_effect = ContractLogicError("execution reverted: out of budget")

        with self.assertRaises(ExecutionRevertedError) as context:
            self.wallet.submit(_transaction(), b"\x00" * 65)

        self.assertEqual(context.exception.reason, "out of budget")
        self.assertTrue(context.exception.nonce_consumed)

    def test_missing_receipt_times_out(self) -> None:
        self.w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("no receipt")

        with self.assertRaises(ConfirmationTimeoutError) as context:
            self.wallet.submit(_transaction(), b"\x00" * 65)

        self.assertEqual(context.exception.transaction_hash, "0x" + "12" * 32)
        self.assertFalse(context.exception.retryable)

    def test_send_failure_is_retryable(self) -> None:
        self.w3.eth.send_raw_transaction.side_effect = ConnectionError("reset")

        with self.assertRaises(SubmissionFailedError):
            self.wallet.submit(_transaction(), b"\x00" * 65)

    def test_package_exposes_wallet_and_executor(self) -> None:
        self.assertIs(safe_executor.Web3SafeWallet, Web3SafeWallet)
        self.assertIn("Web3SafeWallet", safe_executor.__all__)
        self.assertTrue(callable(safe_executor.AuthorizedExecutor().execute))

    def test_from_settings_requires_rpc_url(self) -> None:
        with self.assertRaises(ValueError):
            Web3SafeWallet.from_settings(ExecutorSettings(), SAFE, self.submitter)


if __name__ == "__main__":
    unittest.main()
