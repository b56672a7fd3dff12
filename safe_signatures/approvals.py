# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Non-cryptographic authorizations recorded by the wallet.

Two kinds of record live here:

- **Approved hashes**: an owner explicitly approved a digest ahead of time.
  Such an owner can occupy a signature slot with an ``approved hash`` entry
  instead of producing a signature.
- **Signed messages**: the wallet itself marked a message hash as signed
  (the on-chain ``signMessage`` flow). An EIP-1271 check with an empty
  signature succeeds for such hashes.

Records never expire. Verification reads an immutable snapshot so that
nothing a contract owner does during a nested validation call can influence
the outcome of the current check.
"""

from __future__ import annotations

import logging
import unittest
from typing import Dict, FrozenSet, Set, Tuple

from typing_extensions import Protocol

from .address import Address


class ApprovalView(Protocol):
    """Read-side interface consumed by the verifier."""

    def is_approved(self, owner: Address, digest: bytes) -> bool:
        ...

    def is_message_signed(self, message_hash: bytes) -> bool:
        ...


class ApprovalSnapshot:
    """Immutable view of an :class:`ApprovalStore` at one point in time."""

    _approved: FrozenSet[Tuple[Address, bytes]]
    _signed: FrozenSet[bytes]

    def __init__(
        self,
        approved: FrozenSet[Tuple[Address, bytes]] = frozenset(),
        signed: FrozenSet[bytes] = frozenset(),
    ):
        self._approved = approved
        self._signed = signed

    def is_approved(self, owner: Address, digest: bytes) -> bool:
        return (owner, digest) in self._approved

    def is_message_signed(self, message_hash: bytes) -> bool:
        return message_hash in self._signed


class ApprovalStore:
    """Mutable record of approved hashes and signed messages.

    Examples:
        Approving ahead of time::

            store = ApprovalStore()
            store.approve_hash(owner, digest)
            assert store.snapshot().is_approved(owner, digest)
    """

    _approved: Dict[Address, Set[bytes]]
    _signed: Set[bytes]

    def __init__(self):
        self._approved = {}
        self._signed = set()

    def approve_hash(self, owner: Address, digest: bytes):
        _check_digest(digest)
        self._approved.setdefault(owner, set()).add(digest)
        logging.info(f"Approved hash 0x{digest.hex()} for owner {owner}")

    def revoke_hash(self, owner: Address, digest: bytes):
        self._approved.get(owner, set()).discard(digest)

    def mark_signed(self, message_hash: bytes):
        _check_digest(message_hash)
        self._signed.add(message_hash)
        logging.info(f"Marked message 0x{message_hash.hex()} as signed")

    def unmark_signed(self, message_hash: bytes):
        self._signed.discard(message_hash)

    def is_approved(self, owner: Address, digest: bytes) -> bool:
        return digest in self._approved.get(owner, set())

    def is_message_signed(self, message_hash: bytes) -> bool:
        return message_hash in self._signed

    def snapshot(self) -> ApprovalSnapshot:
        approved = frozenset(
            (owner, digest)
            for owner, digests in self._approved.items()
            for digest in digests
        )
        return ApprovalSnapshot(approved, frozenset(self._signed))


def _check_digest(digest: bytes):
    if len(digest) != 32:
        raise ValueError(f"Expected a 32-byte hash, got {len(digest)}")


class Test(unittest.TestCase):
    OWNER = Address.from_int(0xA11CE)
    DIGEST = b"\x42" * 32

    def test_approve_and_revoke(self):
        store = ApprovalStore()
        self.assertFalse(store.is_approved(self.OWNER, self.DIGEST))
        store.approve_hash(self.OWNER, self.DIGEST)
        self.assertTrue(store.is_approved(self.OWNER, self.DIGEST))
        self.assertFalse(store.is_approved(Address.from_int(0xB0B), self.DIGEST))
        store.revoke_hash(self.OWNER, self.DIGEST)
        self.assertFalse(store.is_approved(self.OWNER, self.DIGEST))

    def test_signed_messages(self):
        store = ApprovalStore()
        store.mark_signed(self.DIGEST)
        self.assertTrue(store.is_message_signed(self.DIGEST))
        store.unmark_signed(self.DIGEST)
        self.assertFalse(store.is_message_signed(self.DIGEST))

    def test_snapshot_is_isolated(self):
        store = ApprovalStore()
        store.approve_hash(self.OWNER, self.DIGEST)
        snapshot = store.snapshot()
        store.revoke_hash(self.OWNER, self.DIGEST)
        store.mark_signed(self.DIGEST)
        self.assertTrue(snapshot.is_approved(self.OWNER, self.DIGEST))
        self.assertFalse(snapshot.is_message_signed(self.DIGEST))

    def test_rejects_bad_length(self):
        with self.assertRaises(ValueError):
            ApprovalStore().approve_hash(self.OWNER, b"\x00")


if __name__ == "__main__":
    unittest.main()
