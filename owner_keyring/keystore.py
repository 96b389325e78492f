"""Keystore directory holding one encrypted document per owner key."""

from pathlib import Path
from typing import Protocol, Tuple
import json
import os

from eth_utils import is_address, to_checksum_address

from .models import OwnerKeyMetadata, OwnerKeyRecord


class KeyStore(Protocol):
    def store(self, record: OwnerKeyRecord) -> None:
        ...

    def load(self, address: str) -> OwnerKeyRecord:
        ...

    def list_metadata(self) -> Tuple[OwnerKeyMetadata, ...]:
        ...


class FileKeyStore:
    """Stores ``<address>.json`` files under ``directory``.

    Files are written to a temporary name and moved into place, so a reader
    never sees a partially written key. Re-storing an address replaces it.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    def store(self, record: OwnerKeyRecord) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        target = self._file_for(record.metadata.address)
        staging = target.with_suffix(".tmp")
        staging.write_text(json.dumps(record.to_dict(), indent=2))
        os.replace(staging, target)

    def load(self, address: str) -> OwnerKeyRecord:
        path = self._file_for(address) if is_address(address) else None
        if path is None or not path.exists():
            raise KeyError(f"Unknown owner address: {address}")
        return OwnerKeyRecord.from_dict(json.loads(path.read_text()))

    def list_metadata(self) -> Tuple[OwnerKeyMetadata, ...]:
        if not self._directory.exists():
            return ()
        records = (
            OwnerKeyRecord.from_dict(json.loads(path.read_text()))
            for path in sorted(self._directory.glob("*.json"))
        )
        return tuple(record.metadata for record in records)

    def _file_for(self, address: str) -> Path:
        return self._directory / f"{to_checksum_address(address)[2:].lower()}.json"
