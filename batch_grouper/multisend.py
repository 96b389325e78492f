"""Packed MultiSend codec for aggregate execution units.

Each member is packed back-to-back without padding as::

    operation (1 byte) | to (20 bytes) | value (32 bytes) | data length (32 bytes) | data

and the packed blob is wrapped as the single ``bytes`` argument of
``multiSend(bytes)``.
"""

from typing import Iterable, List, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_canonical_address, to_checksum_address

from .models import ElementaryCall, Operation


class MultiSendDecodeError(ValueError):
    """Raised when a packed MultiSend payload is malformed."""


MULTISEND_SELECTOR = function_signature_to_4byte_selector("multiSend(bytes)")

_OPERATION_SIZE = 1
_ADDRESS_SIZE = 20
_WORD_SIZE = 32
_HEADER_SIZE = _OPERATION_SIZE + _ADDRESS_SIZE + _WORD_SIZE + _WORD_SIZE


def encode_multisend(calls: Iterable[ElementaryCall]) -> bytes:
    return b"".join(_pack_call(call) for call in calls)


def decode_multisend(packed: bytes) -> Tuple[ElementaryCall, ...]:
    calls: List[ElementaryCall] = []
    offset = 0
    while offset < len(packed):
        if len(packed) - offset < _HEADER_SIZE:
            raise MultiSendDecodeError(f"Truncated member header at byte {offset}.")
        operation = packed[offset]
        if operation != Operation.CALL.value:
            raise MultiSendDecodeError(
                f"Unsupported inner operation {operation} at byte {offset}."
            )
        cursor = offset + _OPERATION_SIZE
        target = to_checksum_address(packed[cursor : cursor + _ADDRESS_SIZE])
        cursor += _ADDRESS_SIZE
        value = int.from_bytes(packed[cursor : cursor + _WORD_SIZE], "big")
        cursor += _WORD_SIZE
        length = int.from_bytes(packed[cursor : cursor + _WORD_SIZE], "big")
        cursor += _WORD_SIZE
        if cursor + length > len(packed):
            raise MultiSendDecodeError(f"Truncated member data at byte {cursor}.")
        calls.append(
            ElementaryCall(target=target, data=bytes(packed[cursor : cursor + length]), value=value)
        )
        offset = cursor + length
    return tuple(calls)


def encode_multisend_call(calls: Iterable[ElementaryCall]) -> bytes:
    """Return ``multiSend(bytes)`` calldata for the given members."""
    return MULTISEND_SELECTOR + encode(["bytes"], [encode_multisend(calls)])


def decode_aggregate_data(data: bytes) -> Tuple[ElementaryCall, ...]:
    if data[:4] != MULTISEND_SELECTOR:
        raise MultiSendDecodeError("Payload is not a multiSend(bytes) call.")
    try:
        (packed,) = decode(["bytes"], data[4:])
    except DecodingError as exc:
        raise MultiSendDecodeError(f"Invalid multiSend argument encoding: {exc}") from exc
    return decode_multisend(packed)


def _pack_call(call: ElementaryCall) -> bytes:
    return (
        bytes([Operation.CALL.value])
        + to_canonical_address(call.target)
        + call.value.to_bytes(_WORD_SIZE, "big")
        + len(call.data).to_bytes(_WORD_SIZE, "big")
        + call.data
    )
