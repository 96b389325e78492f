"""Deterministic grouping of elementary calls into execution units."""

from typing import Iterable, List, Tuple

from eth_utils import is_address, to_checksum_address

from .models import ElementaryCall, ExecutionUnit
from .multisend import decode_aggregate_data, encode_multisend_call

_MAX_UINT256 = 2**256 - 1


class InvalidCallError(ValueError):
    """Raised when an elementary call or aggregator address is malformed."""


class EmptyGroupError(InvalidCallError):
    """Raised when a declared group contains no calls."""

    def __init__(self, group_index: int) -> None:
        super().__init__(f"Group {group_index} has no calls.")
        self.group_index = group_index


def group_calls(
    groups: Iterable[Iterable[ElementaryCall]], aggregator: str
) -> Tuple[ExecutionUnit, ...]:
    """Map each declared group to exactly one execution unit.

    Singleton groups become direct calls. Larger groups become one aggregate
    unit targeting ``aggregator`` whose payload packs the members in the
    declared order. All groups are validated before any unit is built.
    """
    _validate_address(aggregator, "Aggregator")
    # Groups may be one-shot iterators; materialize once for both passes.
    materialized = [tuple(group) for group in groups]
    for index, group in enumerate(materialized):
        if not group:
            raise EmptyGroupError(index)
        for call in group:
            validate_call(call)

    aggregator = to_checksum_address(aggregator)
    return tuple(_group_to_unit(group, aggregator) for group in materialized)


def group_each(calls: Iterable[ElementaryCall], aggregator: str) -> Tuple[ExecutionUnit, ...]:
    return group_calls([(call,) for call in calls], aggregator)


def group_all(calls: Iterable[ElementaryCall], aggregator: str) -> Tuple[ExecutionUnit, ...]:
    return group_calls([tuple(calls)], aggregator)


def flatten_units(units: Iterable[ExecutionUnit]) -> Tuple[ElementaryCall, ...]:
    """Expand units back into the elementary calls they execute, in order."""
    calls: List[ElementaryCall] = []
    for unit in units:
        if unit.is_aggregate:
            calls.extend(decode_aggregate_data(unit.data))
        else:
            calls.append(ElementaryCall(target=unit.target, data=unit.data, value=unit.value))
    return tuple(calls)


def validate_call(call: ElementaryCall) -> None:
    _validate_address(call.target, "Call target")
    if not isinstance(call.data, (bytes, bytearray)):
        raise InvalidCallError("Call data must be bytes.")
    if isinstance(call.value, bool) or not isinstance(call.value, int):
        raise InvalidCallError("Call value must be an integer.")
    if call.value < 0 or call.value > _MAX_UINT256:
        raise InvalidCallError("Call value must fit in uint256.")


def _validate_address(address: str, label: str) -> None:
    if not isinstance(address, str) or not is_address(address):
        raise InvalidCallError(f"{label} must be a 20-byte hex address: {address!r}")


def _group_to_unit(group: Tuple[ElementaryCall, ...], aggregator: str) -> ExecutionUnit:
    if len(group) == 1:
        (call,) = group
        return ExecutionUnit(
            target=to_checksum_address(call.target),
            data=bytes(call.data),
            value=call.value,
            is_aggregate=False,
            member_count=1,
        )
    return ExecutionUnit(
        target=aggregator,
        data=encode_multisend_call(group),
        value=0,
        is_aggregate=True,
        member_count=len(group),
    )
