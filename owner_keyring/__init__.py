from .keyring import KeyringLockedError, KeyringSigner, KeyStatus, OwnerKeyring
from .keystore import FileKeyStore, KeyStore
from .models import OwnerKeyMetadata, OwnerKeyRecord

__all__ = [
    "FileKeyStore",
    "KeyStatus",
    "KeyStore",
    "KeyringLockedError",
    "KeyringSigner",
    "OwnerKeyMetadata",
    "OwnerKeyRecord",
    "OwnerKeyring",
]
