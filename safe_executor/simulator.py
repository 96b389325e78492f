"""In-process chain simulation for exercising the executor without network calls.

The simulated Safe checks signatures and nonces the way the deployed
contract does and runs calls atomically: a revert anywhere restores every
contract's state and surfaces the revert reason unchanged.
"""

import copy
from dataclasses import dataclass
import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address

from batch_grouper.models import Operation
from batch_grouper.multisend import MULTISEND_SELECTOR, MultiSendDecodeError, decode_aggregate_data

from .errors import ExecutionRevertedError, SignerError, SubmissionFailedError
from .hashing import safe_tx_hash
from .models import ExecutionEvent, SubmissionResult, WalletTransaction
from .signing import SIGNATURE_LENGTH, recover_signer

UNINITIALIZED_MOCK = "Mock on the method is not initialized"

T = TypeVar("T")


class Revert(Exception):
    """A simulated on-chain revert carrying its reason string."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class CallContext:
    sender: str
    address: str
    value: int


class SimulatedContract:
    """Base class for simulated contracts; ``state`` is rolled back on revert."""

    def __init__(self, address: str) -> None:
        self.address = to_checksum_address(address)
        self.state: Dict[str, object] = {}

    def handle(self, chain: "SimulatedChain", context: CallContext, data: bytes) -> bytes:
        raise NotImplementedError


class SimulatedChain:
    def __init__(self, chain_id: int = 31337) -> None:
        self.chain_id = chain_id
        self.lock = threading.RLock()
        self._contracts: Dict[str, SimulatedContract] = {}
        self._balances: Dict[str, int] = {}
        self._events: List[ExecutionEvent] = []
        self._transaction_count = 0

    @property
    def events(self) -> Tuple[ExecutionEvent, ...]:
        with self.lock:
            return tuple(self._events)

    def deploy(self, contract: SimulatedContract) -> SimulatedContract:
        with self.lock:
            if contract.address in self._contracts:
                raise ValueError(f"Contract already deployed at {contract.address}.")
            self._contracts[contract.address] = contract
            return contract

    def balance_of(self, address: str) -> int:
        with self.lock:
            return self._balances.get(to_checksum_address(address), 0)

    def fund(self, address: str, amount: int) -> None:
        with self.lock:
            address = to_checksum_address(address)
            self._balances[address] = self._balances.get(address, 0) + amount

    def call(self, sender: str, to: str, data: bytes, value: int = 0) -> bytes:
        to = to_checksum_address(to)
        self._move_value(sender, to, value)
        contract = self._contracts.get(to)
        if contract is None:
            # Accounts without code accept any call.
            return b""
        return contract.handle(self, CallContext(sender=sender, address=to, value=value), data)

    def delegate_call(self, context: CallContext, to: str, data: bytes) -> bytes:
        contract = self._contracts.get(to_checksum_address(to))
        if contract is None:
            return b""
        return contract.handle(self, context, data)

    def emit(self, emitter: str, name: str, *args: object) -> None:
        self._events.append(ExecutionEvent(emitter=emitter, name=name, args=tuple(args)))

    def transact(self, body: Callable[[], T]) -> Tuple[str, T, Tuple[ExecutionEvent, ...]]:
        """Run ``body`` atomically and return (transaction hash, result, events)."""
        with self.lock:
            states = {
                address: copy.deepcopy(contract.state)
                for address, contract in self._contracts.items()
            }
            balances = dict(self._balances)
            event_count = len(self._events)
            try:
                result = body()
            except Revert:
                for address, state in states.items():
                    self._contracts[address].state = state
                self._balances = balances
                del self._events[event_count:]
                raise
            self._transaction_count += 1
            tx_hash = "0x" + keccak(text=f"{self.chain_id}:{self._transaction_count}").hex()
            return tx_hash, result, tuple(self._events[event_count:])

    def _move_value(self, sender: str, to: str, value: int) -> None:
        if not value:
            return
        sender = to_checksum_address(sender)
        available = self._balances.get(sender, 0)
        if available < value:
            raise Revert("Insufficient balance for value transfer")
        self._balances[sender] = available - value
        self._balances[to] = self._balances.get(to, 0) + value


class SimulatedSafe(SimulatedContract):
    """Threshold-signature wallet that also serves as the executor's wallet client."""

    def __init__(
        self,
        chain: SimulatedChain,
        address: str,
        owners: Sequence[str],
        threshold: int,
    ) -> None:
        super().__init__(address)
        owner_set = tuple(to_checksum_address(owner) for owner in owners)
        if len(set(owner_set)) != len(owner_set):
            raise ValueError("Owners must be distinct.")
        if not 1 <= threshold <= len(owner_set):
            raise ValueError("Threshold must be between 1 and the number of owners.")
        self._chain = chain
        self._offline = False
        self.state = {"nonce": 0, "owners": owner_set, "threshold": threshold}
        chain.deploy(self)

    def chain_id(self) -> int:
        return self._chain.chain_id

    def nonce(self) -> int:
        with self._chain.lock:
            return self.state["nonce"]

    def threshold(self) -> int:
        with self._chain.lock:
            return self.state["threshold"]

    def owners(self) -> Tuple[str, ...]:
        with self._chain.lock:
            return self.state["owners"]

    def set_offline(self, offline: bool) -> None:
        """Make submissions fail in transport, before reaching the chain."""
        self._offline = offline

    def submit(self, transaction: WalletTransaction, signatures: bytes) -> SubmissionResult:
        if self._offline:
            raise SubmissionFailedError(f"Wallet {self.address} is unreachable.")
        try:
            tx_hash, _, events = self._chain.transact(
                lambda: self._exec_transaction(transaction, signatures)
            )
        except Revert as exc:
            raise ExecutionRevertedError(exc.reason) from exc
        return SubmissionResult(transaction_hash=tx_hash, events=events)

    def handle(self, chain: SimulatedChain, context: CallContext, data: bytes) -> bytes:
        if data:
            raise Revert("Safe does not accept direct calls")
        return b""

    def _exec_transaction(self, transaction: WalletTransaction, signatures: bytes) -> bytes:
        message_hash = safe_tx_hash(self._chain.chain_id, self.address, transaction)
        if transaction.nonce != self.state["nonce"]:
            # A stale nonce changes the hash, so the owners' signatures no longer recover.
            raise Revert("GS026")
        self._check_signatures(message_hash, signatures)
        self.state["nonce"] += 1

        if transaction.operation == Operation.DELEGATE_CALL:
            context = CallContext(sender=self.address, address=self.address, value=transaction.value)
            result = self._chain.delegate_call(context, transaction.to, transaction.data)
        else:
            result = self._chain.call(self.address, transaction.to, transaction.data, transaction.value)
        self._chain.emit(self.address, "ExecutionSuccess", message_hash)
        return result

    def _check_signatures(self, message_hash: bytes, signatures: bytes) -> None:
        threshold = self.state["threshold"]
        if len(signatures) < threshold * SIGNATURE_LENGTH:
            raise Revert("GS020")
        owners = self.state["owners"]
        last_owner = 0
        for index in range(threshold):
            chunk = signatures[index * SIGNATURE_LENGTH : (index + 1) * SIGNATURE_LENGTH]
            try:
                signer = recover_signer(message_hash, chunk)
            except SignerError as exc:
                raise Revert("GS026") from exc
            if int(signer, 16) <= last_owner or signer not in owners:
                raise Revert("GS026")
            last_owner = int(signer, 16)


class SimulatedMultiSend(SimulatedContract):
    """Aggregator executing packed inner calls in order from the caller's context."""

    def handle(self, chain: SimulatedChain, context: CallContext, data: bytes) -> bytes:
        if context.address == self.address:
            raise Revert("MultiSend should only be called via delegatecall")
        if data[:4] != MULTISEND_SELECTOR:
            raise Revert("Unknown MultiSend method")
        try:
            calls = decode_aggregate_data(data)
        except MultiSendDecodeError as exc:
            raise Revert("Invalid MultiSend payload") from exc
        for call in calls:
            chain.call(context.address, call.target, call.data, call.value)
        return b""


class MockContract(SimulatedContract):
    """Contract whose methods revert until explicitly mocked.

    Mocks match either exact arguments or, when registered without
    arguments, any call of the method.
    """

    def __init__(self, address: str) -> None:
        super().__init__(address)
        self.state = {"calls": []}
        self._signatures: Dict[bytes, str] = {}
        self._responses: Dict[Tuple[bytes, Optional[bytes]], Tuple[bool, object]] = {}

    @property
    def calls(self) -> Tuple[Tuple[str, str, Tuple[object, ...]], ...]:
        return tuple(self.state["calls"])

    def mock_returns(
        self,
        signature: str,
        args: Optional[Sequence[object]] = None,
        output_types: Sequence[str] = (),
        output: Sequence[object] = (),
    ) -> None:
        self._register(signature, args, (False, encode(list(output_types), list(output))))

    def mock_reverts(
        self, signature: str, reason: str, args: Optional[Sequence[object]] = None
    ) -> None:
        self._register(signature, args, (True, reason))

    def reset(self) -> None:
        self._responses.clear()

    def handle(self, chain: SimulatedChain, context: CallContext, data: bytes) -> bytes:
        selector, arguments = bytes(data[:4]), bytes(data[4:])
        response = self._responses.get((selector, arguments)) or self._responses.get((selector, None))
        if response is None:
            raise Revert(UNINITIALIZED_MOCK)
        reverts, payload = response
        if reverts:
            raise Revert(payload)
        signature = self._signatures[selector]
        self.state["calls"].append((context.sender, signature, _decode_args(signature, arguments)))
        return payload

    def _register(
        self, signature: str, args: Optional[Sequence[object]], response: Tuple[bool, object]
    ) -> None:
        selector = function_signature_to_4byte_selector(signature)
        self._signatures[selector] = signature
        encoded_args = None if args is None else encode(_argument_types(signature), list(args))
        self._responses[(selector, encoded_args)] = response


class SimulatedBridgeMediator(SimulatedContract):
    """Token bridge entry point: pulls tokens from the caller and announces the receiver."""

    RELAY_SIGNATURE = "relayTokens(address,address,uint256)"
    TRANSFER_FROM_SIGNATURE = "transferFrom(address,address,uint256)"

    def __init__(self, address: str) -> None:
        super().__init__(address)
        self.state = {"relayed": []}

    def handle(self, chain: SimulatedChain, context: CallContext, data: bytes) -> bytes:
        if data[:4] != function_signature_to_4byte_selector(self.RELAY_SIGNATURE):
            raise Revert("Unknown mediator method")
        try:
            token, receiver, amount = decode(["address", "address", "uint256"], data[4:])
        except DecodingError as exc:
            raise Revert("Invalid relayTokens arguments") from exc
        pull = function_signature_to_4byte_selector(self.TRANSFER_FROM_SIGNATURE) + encode(
            ["address", "address", "uint256"], [context.sender, self.address, amount]
        )
        returned = chain.call(self.address, token, pull)
        if returned and not decode(["bool"], returned)[0]:
            raise Revert("transferFrom failed")
        receiver = to_checksum_address(receiver)
        self.state["relayed"].append((to_checksum_address(token), receiver, amount))
        chain.emit(self.address, "Receiver", receiver)
        return b""


def _argument_types(signature: str) -> List[str]:
    inner = signature[signature.index("(") + 1 : signature.rindex(")")]
    return [item for item in inner.split(",") if item]


def _decode_args(signature: str, arguments: bytes) -> Tuple[object, ...]:
    try:
        return tuple(decode(_argument_types(signature), arguments))
    except DecodingError as exc:
        raise Revert("Invalid mocked call arguments") from exc
