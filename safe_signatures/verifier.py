# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Threshold verification of packed owner signatures.

Given a digest and a signature blob, the verifier resolves every entry to an
owner address, demands that the resolved addresses are owners and strictly
ascending, and succeeds only once a threshold of entries has been processed.
The ascending-order rule is the only duplicate guard: an owner cannot sign
twice and a slot cannot be filled by anyone outside the owner set.

Entry resolution:
- **ECDSA**: recover the signer from the digest.
- **eth_sign**: recover the signer from the EIP-191 wrapped digest.
- **Approved hash**: the slot's owner approved the digest beforehand, or is
  the caller of this very check.
- **Contract signature**: the slot's owner is a contract and is asked, through
  a caller-supplied capability, whether it accepts the embedded payload.

Verification is synchronous and never mutates owner or approval state. The
owner registry and approval view it receives are expected to be snapshots.

Examples:
    Checking a blob against a 2-of-3 owner set::

        verifier = SignatureVerifier(owner_set, approvals.snapshot())
        verifier.check_signatures(digest, blob)
"""

from __future__ import annotations

import logging
import unittest
from typing import Optional, Sequence

from typing_extensions import Protocol

from . import signature_codec
from .address import Address
from .approvals import ApprovalSnapshot, ApprovalView
from .errors import (
    ContractSignatureRejected,
    HashNotApproved,
    InvalidSignature,
    MalformedSignature,
    NotAnOwner,
    ThresholdNotMet,
    UnsortedOrDuplicateSigner,
)
from .hash_domain import eth_signed_message_hash
from .owners import OwnerRegistry, OwnerSet
from .secp256k1_ecdsa import PrivateKey
from .signature_codec import (
    ApprovedHashSignature,
    ContractSignature,
    EcdsaSignature,
    EthSignSignature,
    SignatureEntry,
)

EIP1271_MAGIC_VALUE = bytes.fromhex("1626ba7e")


class ContractSignatureValidator(Protocol):
    """Capability that asks a contract owner to validate a signature.

    Implementations return the contract's 4-byte answer; anything other than
    :data:`EIP1271_MAGIC_VALUE`, or any exception, counts as a rejection.
    """

    def __call__(self, owner: Address, digest: bytes, data: bytes) -> bytes:
        ...


class SignatureVerifier:
    """Checks signature entries against an owner registry.

    Attributes:
        owners: Owner registry snapshot, read-only.
        approvals: Approval snapshot, read-only.
        contract_validator: Capability used for contract signatures, or None
            when no contract owner can be consulted.
    """

    owners: OwnerRegistry
    approvals: ApprovalView
    contract_validator: Optional[ContractSignatureValidator]

    def __init__(
        self,
        owners: OwnerRegistry,
        approvals: Optional[ApprovalView] = None,
        contract_validator: Optional[ContractSignatureValidator] = None,
    ):
        self.owners = owners
        self.approvals = approvals if approvals is not None else ApprovalSnapshot()
        self.contract_validator = contract_validator

    def check_signatures(
        self, digest: bytes, signatures: bytes, caller: Optional[Address] = None
    ):
        """Verify ``signatures`` against the registry's current threshold."""
        self.check_n_signatures(digest, signatures, self.owners.threshold(), caller)

    def check_n_signatures(
        self,
        digest: bytes,
        signatures: bytes,
        required: int,
        caller: Optional[Address] = None,
    ):
        """Decode exactly ``required`` slots from ``signatures`` and verify them.

        Bytes after the static slots are the dynamic region holding contract
        signature payloads; they may also be unused.

        Raises:
            ThresholdNotMet: If ``required`` is below one, or the blob holds
                only whole slots and too few of them.
            MalformedSignature: If the blob cannot be decoded.
            SignatureVerificationError: Any rejection raised by :meth:`verify`.
        """
        if required < 1:
            raise ThresholdNotMet("Threshold needs to be defined", "GS001")
        slots = len(signatures) // signature_codec.SLOT_LENGTH
        whole_slots = len(signatures) % signature_codec.SLOT_LENGTH == 0
        if slots < required and whole_slots:
            raise ThresholdNotMet(f"Got {slots} of {required} required signatures")

        entries = signature_codec.decode(signatures, required)
        self.verify(digest, entries, required, caller)

    def verify(
        self,
        digest: bytes,
        entries: Sequence[SignatureEntry],
        threshold: int,
        caller: Optional[Address] = None,
    ):
        """Resolve every entry and enforce membership, ordering and threshold.

        Args:
            digest: The 32-byte hash the owners signed.
            entries: Decoded entries in blob order.
            threshold: Minimum number of entries required.
            caller: Identity invoking the check; an owner calling directly
                authorizes its own approved-hash slot.

        Raises:
            MalformedSignature: If ``digest`` is not 32 bytes.
            InvalidSignature, HashNotApproved, ContractSignatureRejected,
            NotAnOwner, UnsortedOrDuplicateSigner, ThresholdNotMet.
        """
        if len(digest) != 32:
            raise MalformedSignature(f"Expected a 32-byte digest, got {len(digest)}")
        if threshold < 1:
            raise ThresholdNotMet("Threshold needs to be defined", "GS001")

        last_owner: Optional[Address] = None
        for position, entry in enumerate(entries):
            current_owner = self._resolve(digest, entry, caller)
            if not self.owners.is_owner(current_owner):
                logging.debug(f"Position {position}: {current_owner} is not an owner")
                raise NotAnOwner(current_owner)
            if last_owner is not None and not current_owner > last_owner:
                logging.debug(f"Position {position}: {current_owner} out of order")
                raise UnsortedOrDuplicateSigner(current_owner, last_owner)
            last_owner = current_owner

        if len(entries) < threshold:
            raise ThresholdNotMet(
                f"Got {len(entries)} of {threshold} required signatures"
            )
        logging.debug(f"Accepted {len(entries)} signatures for 0x{digest.hex()}")

    def _resolve(
        self, digest: bytes, entry: SignatureEntry, caller: Optional[Address]
    ) -> Address:
        if isinstance(entry, EcdsaSignature):
            return _recover_owner(digest, entry)
        elif isinstance(entry, EthSignSignature):
            return _recover_owner(eth_signed_message_hash(digest), entry)
        elif isinstance(entry, ApprovedHashSignature):
            return self._resolve_approved_hash(digest, entry, caller)
        elif isinstance(entry, ContractSignature):
            return self._resolve_contract_signature(digest, entry)
        raise TypeError(f"Unsupported signature entry {entry!r}")

    def _resolve_approved_hash(
        self, digest: bytes, entry: ApprovedHashSignature, caller: Optional[Address]
    ) -> Address:
        if caller == entry.owner or self.approvals.is_approved(entry.owner, digest):
            return entry.owner
        raise HashNotApproved(
            f"Hash not approved by {entry.owner}", "GS025"
        )

    def _resolve_contract_signature(
        self, digest: bytes, entry: ContractSignature
    ) -> Address:
        if self.contract_validator is None:
            raise ContractSignatureRejected(entry.owner, "no contract validator")
        try:
            result = self.contract_validator(entry.owner, digest, entry.data)
        except Exception as e:
            logging.warning(f"Contract owner {entry.owner} failed validation: {e}")
            raise ContractSignatureRejected(entry.owner, str(e)) from e
        if not isinstance(result, (bytes, bytearray)):
            raise ContractSignatureRejected(
                entry.owner, f"unexpected return type {type(result).__name__}"
            )
        if bytes(result) != EIP1271_MAGIC_VALUE:
            raise ContractSignatureRejected(
                entry.owner, f"unexpected return value 0x{bytes(result[:32]).hex()}"
            )
        return entry.owner


def _recover_owner(digest: bytes, entry: SignatureEntry) -> Address:
    owner = entry.signature.recover(digest).address()  # type: ignore[union-attr]
    if owner == Address.ZERO:
        raise InvalidSignature("Recovered the zero address")
    return owner


class Test(unittest.TestCase):
    DIGEST = b"\x11" * 32

    def setUp(self):
        keys = [
            PrivateKey.from_hex((i + 1).to_bytes(32, "big")) for i in range(3)
        ]
        self.keys = sorted(keys, key=lambda key: key.address())
        self.addresses = [key.address() for key in self.keys]
        self.owners = OwnerSet(self.addresses, 2)

    def sign(self, *indices: int) -> bytes:
        return signature_codec.encode(
            [EcdsaSignature(self.keys[i].sign_digest(self.DIGEST)) for i in indices]
        )

    def test_threshold_met(self):
        SignatureVerifier(self.owners).check_signatures(self.DIGEST, self.sign(0, 2))

    def test_unsorted(self):
        with self.assertRaises(UnsortedOrDuplicateSigner):
            SignatureVerifier(self.owners).check_signatures(self.DIGEST, self.sign(2, 0))

    def test_duplicate(self):
        with self.assertRaises(UnsortedOrDuplicateSigner):
            SignatureVerifier(self.owners).check_signatures(self.DIGEST, self.sign(1, 1))

    def test_not_an_owner(self):
        stranger = PrivateKey.random()
        blob = signature_codec.encode([EcdsaSignature(stranger.sign_digest(self.DIGEST))])
        with self.assertRaises(NotAnOwner):
            SignatureVerifier(OwnerSet(self.addresses, 1)).check_signatures(
                self.DIGEST, blob
            )

    def test_too_few_whole_slots(self):
        with self.assertRaises(ThresholdNotMet):
            SignatureVerifier(self.owners).check_signatures(self.DIGEST, self.sign(0))
        with self.assertRaises(ThresholdNotMet):
            SignatureVerifier(self.owners).check_signatures(self.DIGEST, b"")

    def test_verify_counts_entries(self):
        entries = [EcdsaSignature(self.keys[0].sign_digest(self.DIGEST))]
        with self.assertRaises(ThresholdNotMet):
            SignatureVerifier(self.owners).verify(self.DIGEST, entries, 2)
        with self.assertRaises(ThresholdNotMet):
            SignatureVerifier(self.owners).verify(self.DIGEST, entries, 0)

    def test_approved_hash(self):
        owner = self.addresses[1]
        blob = signature_codec.encode([ApprovedHashSignature(owner)])
        verifier = SignatureVerifier(self.owners)
        with self.assertRaises(HashNotApproved):
            verifier.check_n_signatures(self.DIGEST, blob, 1)
        verifier.check_n_signatures(self.DIGEST, blob, 1, caller=owner)

        approved = ApprovalSnapshot(frozenset({(owner, self.DIGEST)}))
        SignatureVerifier(self.owners, approved).check_n_signatures(self.DIGEST, blob, 1)

    def test_contract_signature(self):
        contract = Address.from_int(0xC0FFEE)
        owners = OwnerSet([contract], 1)
        blob = signature_codec.encode([ContractSignature(contract, b"\xaa")])
        calls = []

        def validator(owner: Address, digest: bytes, data: bytes) -> bytes:
            calls.append((owner, digest, data))
            return EIP1271_MAGIC_VALUE if data == b"\xaa" else b"\x00" * 4

        SignatureVerifier(owners, contract_validator=validator).check_signatures(
            self.DIGEST, blob
        )
        self.assertEqual(calls, [(contract, self.DIGEST, b"\xaa")])

        rejected = signature_codec.encode([ContractSignature(contract, b"\xbb")])
        with self.assertRaises(ContractSignatureRejected):
            SignatureVerifier(owners, contract_validator=validator).check_signatures(
                self.DIGEST, rejected
            )

    def test_contract_signature_errors(self):
        contract = Address.from_int(0xC0FFEE)
        owners = OwnerSet([contract], 1)
        blob = signature_codec.encode([ContractSignature(contract, b"")])

        def reverting(owner: Address, digest: bytes, data: bytes) -> bytes:
            raise RuntimeError("execution reverted")

        with self.assertRaises(ContractSignatureRejected):
            SignatureVerifier(owners, contract_validator=reverting).check_signatures(
                self.DIGEST, blob
            )
        with self.assertRaises(ContractSignatureRejected):
            SignatureVerifier(owners).check_signatures(self.DIGEST, blob)

    def test_contract_signature_wrong_return_type(self):
        contract = Address.from_int(0xC0FFEE)
        owners = OwnerSet([contract], 1)
        blob = signature_codec.encode([ContractSignature(contract, b"")])

        for result in ("0x1626ba7e", 0x1626BA7E, -1, 5_000_000, None):
            verifier = SignatureVerifier(
                owners, contract_validator=lambda owner, digest, data: result
            )
            with self.assertRaises(ContractSignatureRejected) as cm:
                verifier.check_signatures(self.DIGEST, blob)
            self.assertLess(len(cm.exception.message), 200)

    def test_contract_signature_long_return_value(self):
        contract = Address.from_int(0xC0FFEE)
        owners = OwnerSet([contract], 1)
        blob = signature_codec.encode([ContractSignature(contract, b"")])
        verifier = SignatureVerifier(
            owners,
            contract_validator=lambda owner, digest, data: EIP1271_MAGIC_VALUE
            + b"\x00" * 1_000_000,
        )
        with self.assertRaises(ContractSignatureRejected) as cm:
            verifier.check_signatures(self.DIGEST, blob)
        self.assertLess(len(cm.exception.message), 200)

        accepting = SignatureVerifier(
            owners,
            contract_validator=lambda owner, digest, data: bytearray(
                EIP1271_MAGIC_VALUE
            ),
        )
        accepting.check_signatures(self.DIGEST, blob)

    def test_digest_length(self):
        entries = [EcdsaSignature(self.keys[0].sign_digest(self.DIGEST))]
        with self.assertRaises(MalformedSignature):
            SignatureVerifier(self.owners).verify(self.DIGEST[:31], entries, 1)
        with self.assertRaises(MalformedSignature):
            SignatureVerifier(self.owners).check_n_signatures(
                b"", self.sign(0, 1), 2
            )

    def test_eth_sign(self):
        wrapped = eth_signed_message_hash(self.DIGEST)
        blob = signature_codec.encode(
            [
                EcdsaSignature(self.keys[0].sign_digest(self.DIGEST)),
                EthSignSignature(self.keys[1].sign_digest(wrapped)),
            ]
        )
        SignatureVerifier(self.owners).check_signatures(self.DIGEST, blob)

    def test_eth_sign_over_raw_digest_fails(self):
        blob = signature_codec.encode(
            [EthSignSignature(self.keys[0].sign_digest(self.DIGEST))]
        )
        with self.assertRaises(NotAnOwner):
            SignatureVerifier(OwnerSet(self.addresses, 1)).check_signatures(
                self.DIGEST, blob
            )


if __name__ == "__main__":
    unittest.main()
