"""Executor settings."""

import os
from typing import Mapping, Optional

from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, Field, field_validator

from .models import ZERO_ADDRESS

ENV_PREFIX = "SAFE_EXECUTOR_"


class ExecutorSettings(BaseModel):
    """Fixed Safe gas/refund fields and transport options.

    Defaults leave gas accounting to the submitting account (no refunds).
    """

    model_config = {"frozen": True}

    safe_tx_gas: int = Field(default=0, ge=0)
    base_gas: int = Field(default=0, ge=0)
    gas_price: int = Field(default=0, ge=0)
    gas_token: str = ZERO_ADDRESS
    refund_receiver: str = ZERO_ADDRESS
    receipt_timeout: float = Field(default=120.0, gt=0)
    rpc_url: Optional[str] = None

    @field_validator("gas_token", "refund_receiver")
    @classmethod
    def _checksum(cls, value: str) -> str:
        if not is_address(value):
            raise ValueError(f"Invalid address: {value!r}")
        return to_checksum_address(value)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ExecutorSettings":
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in environ:
                values[name] = environ[key]
        return cls.model_validate(values)
