"""Owner signing identities with an explicit lock/unlock lifecycle."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple
import secrets

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address

from safe_executor.errors import SignerError
from safe_executor.models import Signature, SignatureRequest
from safe_executor.signing import LocalOwnerSigner

from .keystore import KeyStore
from .models import OwnerKeyMetadata, OwnerKeyRecord


class KeyringLockedError(SignerError):
    """Raised when a locked owner key is asked to sign."""


@dataclass(frozen=True)
class KeyStatus:
    address: str
    unlocked: bool


class OwnerKeyring:
    """Encrypted owner keys that can sign only while unlocked."""

    def __init__(
        self,
        keystore: KeyStore,
        kdf: str = "scrypt",
        iterations: Optional[int] = None,
        time_provider: Optional[Callable[[], str]] = None,
        entropy_provider: Optional[Callable[[int], bytes]] = None,
    ) -> None:
        self._keystore = keystore
        self._kdf = kdf
        self._iterations = iterations
        self._time_provider = time_provider or _utc_timestamp
        self._entropy_provider = entropy_provider or secrets.token_bytes
        self._unlocked: Dict[str, LocalAccount] = {}

    def create_key(self, label: str, passphrase: str) -> OwnerKeyMetadata:
        return self.import_key(label, self._entropy_provider(32), passphrase)

    def import_key(self, label: str, private_key: bytes, passphrase: str) -> OwnerKeyMetadata:
        account = Account.from_key(private_key)
        keyfile = Account.encrypt(
            account.key, passphrase, kdf=self._kdf, iterations=self._iterations
        )
        metadata = OwnerKeyMetadata(
            address=account.address,
            label=label,
            created_at=self._time_provider(),
        )
        self._keystore.store(OwnerKeyRecord(metadata=metadata, keyfile=keyfile))
        return metadata

    def list_keys(self) -> Tuple[OwnerKeyMetadata, ...]:
        return self._keystore.list_metadata()

    def unlock(self, address: str, passphrase: str) -> KeyStatus:
        address = to_checksum_address(address)
        record = self._keystore.load(address)
        private_key = Account.decrypt(record.keyfile, passphrase)
        self._unlocked[address] = Account.from_key(private_key)
        return KeyStatus(address=address, unlocked=True)

    def lock(self, address: Optional[str] = None) -> None:
        if address is None:
            self._unlocked.clear()
        else:
            self._unlocked.pop(to_checksum_address(address), None)

    def status(self, address: str) -> KeyStatus:
        address = to_checksum_address(address)
        return KeyStatus(address=address, unlocked=address in self._unlocked)

    def signer(self, address: str) -> "KeyringSigner":
        address = to_checksum_address(address)
        self._keystore.load(address)
        return KeyringSigner(self, address)

    def _require_unlocked(self, address: str) -> LocalAccount:
        account = self._unlocked.get(address)
        if account is None:
            raise KeyringLockedError(f"Owner key {address} is locked.")
        return account


class KeyringSigner:
    """Signer bound to a keyring entry; signing fails once the key is locked."""

    def __init__(self, keyring: OwnerKeyring, address: str) -> None:
        self._keyring = keyring
        self._address = address

    @property
    def address(self) -> str:
        return self._address

    def sign(self, request: SignatureRequest) -> Signature:
        account = self._keyring._require_unlocked(self._address)
        return LocalOwnerSigner(account).sign(request)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()
