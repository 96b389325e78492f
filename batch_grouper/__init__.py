from .grouper import (
    EmptyGroupError,
    InvalidCallError,
    flatten_units,
    group_all,
    group_calls,
    group_each,
    validate_call,
)
from .models import ElementaryCall, ExecutionUnit, Operation
from .multisend import (
    MULTISEND_SELECTOR,
    MultiSendDecodeError,
    decode_aggregate_data,
    decode_multisend,
    encode_multisend,
    encode_multisend_call,
)

__all__ = [
    "MULTISEND_SELECTOR",
    "ElementaryCall",
    "EmptyGroupError",
    "ExecutionUnit",
    "InvalidCallError",
    "MultiSendDecodeError",
    "Operation",
    "decode_aggregate_data",
    "decode_multisend",
    "encode_multisend",
    "encode_multisend_call",
    "flatten_units",
    "group_all",
    "group_calls",
    "group_each",
    "validate_call",
]
