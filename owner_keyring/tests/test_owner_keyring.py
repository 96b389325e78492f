"""Unit tests for owner key custody and keyring-backed signing."""

import json
import tempfile
import unittest
from pathlib import Path

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector

from batch_grouper.grouper import group_each
from batch_grouper.models import ElementaryCall, ExecutionUnit
from owner_keyring.keyring import KeyringLockedError, OwnerKeyring
from owner_keyring.keystore import FileKeyStore
from safe_executor.config import ExecutorSettings
from safe_executor.errors import InsufficientSignaturesError
from safe_executor.executor import AuthorizedExecutor, build_transaction
from safe_executor.hashing import safe_tx_hash
from safe_executor.models import SignatureRequest
from safe_executor.signing import recover_signer
from safe_executor.simulator import MockContract, SimulatedChain, SimulatedSafe

SAFE = "0x" + "5a" * 20
TARGET = "0x" + "c0" * 20
AGGREGATOR = "0x" + "a5" * 20


class OwnerKeyringTests(unittest.TestCase):
    class InMemoryKeyStore:
        def __init__(self) -> None:
            self._records = {}

        def store(self, record) -> None:
            self._records[record.metadata.address.lower()] = record

        def load(self, address: str):
            if address.lower() not in self._records:
                raise KeyError(f"Unknown owner address: {address}")
            return self._records[address.lower()]

        def list_metadata(self):
            return tuple(record.metadata for record in self._records.values())

    def _make_keyring(self, private_key: bytes, keystore=None):
        keystore = keystore or self.InMemoryKeyStore()
        keyring = OwnerKeyring(
            keystore=keystore,
            kdf="pbkdf2",
            iterations=2,
            time_provider=lambda: "2024-01-01T00:00:00Z",
            entropy_provider=lambda n: private_key,
        )
        metadata = keyring.create_key(label="Primary", passphrase="pass")
        return keyring, keystore, metadata

    def _request(self, nonce: int = 0) -> SignatureRequest:
        unit = ExecutionUnit(
            target=TARGET, data=b"\x01\x02", value=0, is_aggregate=False, member_count=1
        )
        transaction = build_transaction(unit, nonce, ExecutorSettings())
        return SignatureRequest(
            wallet=SAFE,
            chain_id=31337,
            transaction=transaction,
            safe_tx_hash=safe_tx_hash(31337, SAFE, transaction),
        )

    def test_private_key_not_written_plaintext(self) -> None:
        private_key = b"\x01" * 32
        _, keystore, metadata = self._make_keyring(private_key)
        record_json = json.dumps(keystore.load(metadata.address).to_dict())

        self.assertNotIn(private_key.hex(), record_json)
        self.assertEqual(metadata.label, "Primary")
        self.assertEqual(metadata.created_at, "2024-01-01T00:00:00Z")

    def test_lock_unlock_and_signing(self) -> None:
        keyring, _, metadata = self._make_keyring(b"\x02" * 32)
        signer = keyring.signer(metadata.address)
        request = self._request()

        with self.assertRaises(KeyringLockedError):
            signer.sign(request)

        status = keyring.unlock(metadata.address, "pass")
        self.assertTrue(status.unlocked)
        signature_one = signer.sign(request)
        signature_two = signer.sign(request)

        self.assertEqual(signature_one, signature_two)
        self.assertEqual(signature_one.signer, metadata.address)
        self.assertEqual(
            recover_signer(request.safe_tx_hash, signature_one.signature_bytes), metadata.address
        )

        keyring.lock()
        self.assertFalse(keyring.status(metadata.address).unlocked)
        with self.assertRaises(KeyringLockedError):
            signer.sign(request)

    def test_wrong_passphrase_fails(self) -> None:
        keyring, _, metadata = self._make_keyring(b"\x03" * 32)
        with self.assertRaises(ValueError):
            keyring.unlock(metadata.address, "wrong")
        self.assertFalse(keyring.status(metadata.address).unlocked)

    def test_unknown_owner_has_no_signer(self) -> None:
        keyring, _, _ = self._make_keyring(b"\x04" * 32)
        with self.assertRaises(KeyError):
            keyring.signer("0x" + "77" * 20)

    def test_imported_keys_are_listed(self) -> None:
        keyring, _, first = self._make_keyring(b"\x05" * 32)
        second = keyring.import_key("Backup", b"\x06" * 32, "other")

        self.assertEqual(
            {metadata.address for metadata in keyring.list_keys()},
            {first.address, second.address},
        )
        keyring.unlock(second.address, "other")
        self.assertTrue(keyring.status(second.address).unlocked)
        self.assertFalse(keyring.status(first.address).unlocked)

    def test_file_keystore_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as directory:
            keys = Path(directory) / "keys"
            keyring, _, metadata = self._make_keyring(b"\x07" * 32, FileKeyStore(keys))

            reopened = OwnerKeyring(FileKeyStore(keys))
            self.assertEqual(reopened.list_keys(), (metadata,))
            reopened.unlock(metadata.address.lower(), "pass")
            self.assertTrue(reopened.status(metadata.address).unlocked)

            (key_file,) = keys.iterdir()
            self.assertEqual(key_file.name, metadata.address[2:].lower() + ".json")
            self.assertNotIn((b"\x07" * 32).hex(), key_file.read_text())

    def test_file_keystore_replaces_and_rejects_unknown(self) -> None:
        with tempfile.TemporaryDirectory() as directory:
            store = FileKeyStore(Path(directory))
            self.assertEqual(store.list_metadata(), ())
            keyring, _, first = self._make_keyring(b"\x09" * 32, store)
            keyring.import_key("Renamed", b"\x09" * 32, "pass")

            self.assertEqual([item.label for item in store.list_metadata()], ["Renamed"])
            self.assertEqual(store.load(first.address.lower()).metadata.label, "Renamed")
            with self.assertRaises(KeyError):
                store.load("0x" + "77" * 20)
            with self.assertRaises(KeyError):
                store.load("not-an-address")

    def test_keyring_signer_authorizes_safe_execution(self) -> None:
        keyring, _, metadata = self._make_keyring(b"\x08" * 32)
        chain = SimulatedChain()
        safe = SimulatedSafe(chain, SAFE, [metadata.address], threshold=1)
        target = chain.deploy(MockContract(TARGET))
        target.mock_returns("ping(uint256)")
        data = function_signature_to_4byte_selector("ping(uint256)") + encode(["uint256"], [1])
        (unit,) = group_each([ElementaryCall(target=TARGET, data=data)], AGGREGATOR)
        executor = AuthorizedExecutor()
        signers = [keyring.signer(metadata.address)]

        with self.assertRaises(InsufficientSignaturesError):
            executor.execute(safe, unit, signers)
        self.assertEqual(safe.nonce(), 0)

        keyring.unlock(metadata.address, "pass")
        receipt = executor.execute(safe, unit, signers)

        self.assertEqual(receipt.nonce, 0)
        self.assertEqual(safe.nonce(), 1)


if __name__ == "__main__":
    unittest.main()
