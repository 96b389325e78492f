"""Domain models for the owner keyring."""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class OwnerKeyMetadata:
    address: str
    label: str
    created_at: str


@dataclass(frozen=True)
class OwnerKeyRecord:
    """An owner key encrypted as a Web3 Secret Storage (keystore v3) document."""

    metadata: OwnerKeyMetadata
    keyfile: Dict[str, object]

    def to_dict(self) -> Dict[str, object]:
        return {
            "metadata": {
                "address": self.metadata.address,
                "label": self.metadata.label,
                "created_at": self.metadata.created_at,
            },
            "keyfile": self.keyfile,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "OwnerKeyRecord":
        meta = data["metadata"]
        metadata = OwnerKeyMetadata(
            address=meta["address"],
            label=meta["label"],
            created_at=meta["created_at"],
        )
        return OwnerKeyRecord(metadata=metadata, keyfile=data["keyfile"])
