"""Owner signing identities and signature bundle assembly."""

from typing import Iterable, Protocol, Tuple

from eth_account.signers.local import LocalAccount
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from .errors import SignerError
from .models import Signature, SignatureRequest

SIGNATURE_LENGTH = 65


class Signer(Protocol):
    @property
    def address(self) -> str:
        ...

    def sign(self, request: SignatureRequest) -> Signature:
        ...


class LocalOwnerSigner:
    """Signs Safe transaction hashes directly with a local owner key."""

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, request: SignatureRequest) -> Signature:
        try:
            signed = self._account.unsafe_sign_hash(request.safe_tx_hash)
        except (TypeError, ValueError) as exc:
            raise SignerError(f"Owner {self.address} could not sign: {exc}") from exc
        return Signature(signer=self.address, signature_bytes=bytes(signed.signature))


def recover_signer(message_hash: bytes, signature_bytes: bytes) -> str:
    """Return the checksummed address that produced an ``r | s | v`` signature."""
    if len(signature_bytes) != SIGNATURE_LENGTH:
        raise SignerError(f"Signature must be {SIGNATURE_LENGTH} bytes.")
    r = int.from_bytes(signature_bytes[:32], "big")
    s = int.from_bytes(signature_bytes[32:64], "big")
    v = signature_bytes[64]
    if v not in (27, 28):
        raise SignerError(f"Unsupported signature v value {v}.")
    try:
        signature = keys.Signature(vrs=(v - 27, r, s))
        public_key = signature.recover_public_key_from_msg_hash(message_hash)
    except (BadSignature, ValidationError) as exc:
        raise SignerError(f"Signature does not recover: {exc}") from exc
    return public_key.to_checksum_address()


def sort_signatures(signatures: Iterable[Signature]) -> Tuple[Signature, ...]:
    # Safe verifies owners in strictly increasing address order.
    return tuple(sorted(signatures, key=lambda item: int(item.signer, 16)))


def pack_signatures(signatures: Iterable[Signature]) -> bytes:
    return b"".join(item.signature_bytes for item in sort_signatures(signatures))
