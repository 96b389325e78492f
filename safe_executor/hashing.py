"""EIP-712 signing payload for Safe transactions."""

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from .models import WalletTransaction

DOMAIN_SEPARATOR_TYPEHASH = keccak(text="EIP712Domain(uint256 chainId,address verifyingContract)")
SAFE_TX_TYPEHASH = keccak(
    text=(
        "SafeTx(address to,uint256 value,bytes data,uint8 operation,uint256 safeTxGas,"
        "uint256 baseGas,uint256 gasPrice,address gasToken,address refundReceiver,uint256 nonce)"
    )
)


def domain_separator(chain_id: int, wallet: str) -> bytes:
    return keccak(
        encode(
            ["bytes32", "uint256", "address"],
            [DOMAIN_SEPARATOR_TYPEHASH, chain_id, to_checksum_address(wallet)],
        )
    )


def safe_tx_struct_hash(transaction: WalletTransaction) -> bytes:
    return keccak(
        encode(
            [
                "bytes32",
                "address",
                "uint256",
                "bytes32",
                "uint8",
                "uint256",
                "uint256",
                "uint256",
                "address",
                "address",
                "uint256",
            ],
            [
                SAFE_TX_TYPEHASH,
                to_checksum_address(transaction.to),
                transaction.value,
                keccak(transaction.data),
                transaction.operation.value,
                transaction.safe_tx_gas,
                transaction.base_gas,
                transaction.gas_price,
                to_checksum_address(transaction.gas_token),
                to_checksum_address(transaction.refund_receiver),
                transaction.nonce,
            ],
        )
    )


def safe_tx_hash(chain_id: int, wallet: str, transaction: WalletTransaction) -> bytes:
    """Hash owners sign: binds chain, wallet, and every transaction field."""
    return keccak(b"\x19\x01" + domain_separator(chain_id, wallet) + safe_tx_struct_hash(transaction))
