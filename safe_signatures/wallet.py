# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
A threshold wallet: owners, approvals, domain and fallback handler in one place.

The wallet is the collaborator the verification engine runs inside. It owns
the mutable state (approved hashes and signed messages), exposes the
signature checks, and routes EIP-1271 queries to its fallback handler with
itself as the execution context.

Examples:
    A 2-of-3 wallet answering an EIP-1271 query::

        handler = CompatibilityFallbackHandler()
        config = WalletConfig(
            chain_id=1,
            owners=[alice.address(), bob.address(), carol.address()],
            threshold=2,
            fallback_handler=handler,
        )
        wallet = Wallet(wallet_address, config)

        message_hash = wallet.domain().digest(data_hash)
        blob = encode_sorted([
            (alice.address(), alice.sign_digest(message_hash)),
            (carol.address(), carol.sign_digest(message_hash)),
        ])
        wallet.fallback().is_valid_signature(data_hash, blob)  # 0x1626ba7e

    Wallets owning wallets::

        registry = {}
        outer = Wallet(outer_address, outer_config, contract_validator=contract_owner_validator(registry))
        registry[inner.address] = inner
"""

from __future__ import annotations

import logging
import unittest
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from . import signature_codec
from .account import Account
from .address import Address
from .approvals import ApprovalStore
from .errors import (
    ContractSignatureRejected,
    DirectCallNotSupported,
    HashNotApproved,
    InvalidSignature,
    MalformedSignature,
    NotAnOwner,
    ThresholdNotMet,
    UnsortedOrDuplicateSigner,
)
from .handler import BoundHandler, CompatibilityFallbackHandler, WalletContext
from .hash_domain import HashDomain, keccak256
from .owners import OwnerSet
from .signature_codec import (
    ApprovedHashSignature,
    ContractSignature,
    EcdsaSignature,
    encode_sorted,
)
from .verifier import EIP1271_MAGIC_VALUE, ContractSignatureValidator, SignatureVerifier


@dataclass
class WalletConfig:
    """Configuration parameters for a :class:`Wallet`.

    Attributes:
        chain_id: Chain the wallet is deployed on; part of every digest.
        owners: Owner addresses, in any order.
        threshold: Number of owner signatures required (1..len(owners)).
        fallback_handler: Handler answering EIP-1271 queries, or None for a
            wallet that answers none.

    Examples:
        Single owner on a local chain::

            config = WalletConfig(31337, [alice.address()], 1, CompatibilityFallbackHandler())
    """

    chain_id: int = 1
    owners: List[Address] = field(default_factory=list)
    threshold: int = 1
    fallback_handler: Optional[CompatibilityFallbackHandler] = None


class Wallet:
    """Owner state and signature checks of one deployed wallet.

    Attributes:
        address: The wallet's own address, bound into its domain.
        config: The configuration the wallet was created from.
        owners: Immutable owner set built from ``config``.
        approvals: Approved hashes and signed messages.
        contract_validator: Capability consulted for contract owners.
    """

    address: Address
    config: WalletConfig
    owners: OwnerSet
    approvals: ApprovalStore
    contract_validator: Optional[ContractSignatureValidator]

    def __init__(
        self,
        address: Address,
        config: WalletConfig,
        approvals: Optional[ApprovalStore] = None,
        contract_validator: Optional[ContractSignatureValidator] = None,
    ):
        self.address = address
        self.config = config
        self.owners = OwnerSet(config.owners, config.threshold)
        self.approvals = approvals if approvals is not None else ApprovalStore()
        self.contract_validator = contract_validator

    def __str__(self) -> str:
        return f"Wallet {self.address}"

    def domain(self) -> HashDomain:
        return HashDomain(self.config.chain_id, self.address)

    def verifier(self) -> SignatureVerifier:
        """A verifier over the current owners and a fresh approval snapshot."""
        return SignatureVerifier(
            self.owners, self.approvals.snapshot(), self.contract_validator
        )

    def check_signatures(
        self, data_hash: bytes, signatures: bytes, caller: Optional[Address] = None
    ):
        self.verifier().check_signatures(data_hash, signatures, caller)

    def check_n_signatures(
        self,
        data_hash: bytes,
        signatures: bytes,
        required: int,
        caller: Optional[Address] = None,
    ):
        self.verifier().check_n_signatures(data_hash, signatures, required, caller)

    def approve_hash(self, caller: Address, digest: bytes):
        """Record that ``caller`` approves ``digest``.

        Raises:
            NotAnOwner: If ``caller`` is not an owner (GS030).
        """
        if not self.owners.is_owner(caller):
            raise NotAnOwner(caller, "GS030")
        self.approvals.approve_hash(caller, digest)

    def sign_message(self, message: bytes) -> bytes:
        """Mark ``message`` as signed by the wallet and return its message hash.

        Afterwards an EIP-1271 query for ``message`` with an empty signature
        succeeds.
        """
        message_hash = self.domain().digest(message)
        self.approvals.mark_signed(message_hash)
        return message_hash

    def signed_messages(self, message_hash: bytes) -> bool:
        return self.approvals.is_message_signed(message_hash)

    def approved_hashes(self, owner: Address, digest: bytes) -> bool:
        return self.approvals.is_approved(owner, digest)

    def fallback(self) -> BoundHandler:
        """Route a call through the wallet to its fallback handler.

        The handler runs with the wallet as its context and as the caller of
        the signature check.

        Raises:
            DirectCallNotSupported: If the wallet has no fallback handler.
        """
        handler = self.config.fallback_handler
        if handler is None:
            raise DirectCallNotSupported(f"{self} has no fallback handler")
        return BoundHandler(handler, WalletContext(self))


def contract_owner_validator(
    wallets: Mapping[Address, Wallet]
) -> ContractSignatureValidator:
    """Validate contract signatures by asking owning wallets through EIP-1271.

    ``wallets`` is looked up at call time, so it can be filled in after the
    validator is handed to the wallets that use it.
    """

    def validate(owner: Address, digest: bytes, data: bytes) -> bytes:
        if owner not in wallets:
            raise KeyError(f"No contract deployed at {owner}")
        logging.debug(f"Asking contract owner {owner} to validate 0x{digest.hex()}")
        return wallets[owner].fallback().is_valid_signature(digest, data)

    return validate


class Test(unittest.TestCase):
    DATA_HASH = keccak256(bytes.fromhex("baddad"))
    CHAIN_ID = 31337

    def setUp(self):
        self.handler = CompatibilityFallbackHandler()
        self.alice = Account.load_key(
            "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
        )
        self.wallet = Wallet(
            Address.from_str("0x5FbDB2315678afecb367f032d93F642f64180aa3"),
            WalletConfig(self.CHAIN_ID, [self.alice.address()], 1, self.handler),
        )

    def owned_wallet(self, owners: List[Account], threshold: int, **kwargs) -> Wallet:
        return Wallet(
            Address.from_int(0x5AFE + len(owners)),
            WalletConfig(
                self.CHAIN_ID,
                [owner.address() for owner in owners],
                threshold,
                self.handler,
            ),
            **kwargs,
        )

    def test_direct_call_rejected(self):
        with self.assertRaises(DirectCallNotSupported):
            self.handler.is_valid_signature(None, self.DATA_HASH, b"")

    def test_message_not_signed(self):
        with self.assertRaises(HashNotApproved) as cm:
            self.wallet.fallback().is_valid_signature(self.DATA_HASH, b"")
        self.assertEqual(cm.exception.message, "Hash not approved")

    def test_signed_message(self):
        message_hash = self.wallet.sign_message(self.DATA_HASH)
        self.assertTrue(self.wallet.signed_messages(message_hash))
        self.assertEqual(
            self.wallet.fallback().is_valid_signature(self.DATA_HASH, b""),
            EIP1271_MAGIC_VALUE,
        )

    def test_invalid_signature_bytes(self):
        with self.assertRaises(MalformedSignature):
            self.wallet.fallback().is_valid_signature(
                self.DATA_HASH, bytes.fromhex("deaddeaddeaddead")
            )

    def test_typed_data_signature(self):
        from eth_account import Account as EthAccount
        from eth_account.messages import encode_typed_data

        signable = encode_typed_data(
            full_message={
                "types": {
                    "EIP712Domain": [
                        {"name": "chainId", "type": "uint256"},
                        {"name": "verifyingContract", "type": "address"},
                    ],
                    "SafeMessage": [{"name": "message", "type": "bytes"}],
                },
                "primaryType": "SafeMessage",
                "domain": {
                    "chainId": self.CHAIN_ID,
                    "verifyingContract": str(self.wallet.address),
                },
                "message": {"message": self.DATA_HASH},
            }
        )
        signed = EthAccount.sign_message(signable, str(self.alice.private_key))
        self.assertEqual(
            self.wallet.fallback().is_valid_signature(
                self.DATA_HASH, bytes(signed.signature)
            ),
            EIP1271_MAGIC_VALUE,
        )

    def test_mixed_signature_types(self):
        bob, carol = Account.generate(), Account.generate()
        wallet = self.owned_wallet([self.alice, bob, carol], 3)
        message_hash = wallet.fallback().get_message_hash(self.DATA_HASH)
        wallet.approve_hash(carol.address(), message_hash)

        blob = encode_sorted(
            [
                (self.alice.address(), self.alice.sign_digest(message_hash)),
                (bob.address(), bob.eth_sign_digest(message_hash)),
                (carol.address(), ApprovedHashSignature(carol.address())),
            ]
        )
        self.assertEqual(
            wallet.fallback().is_valid_signature(self.DATA_HASH, blob),
            EIP1271_MAGIC_VALUE,
        )

    def test_threshold(self):
        bob = Account.generate()
        wallet = self.owned_wallet([self.alice, bob], 2)
        message_hash = wallet.domain().digest(self.DATA_HASH)
        blob = signature_codec.encode([self.alice.sign_digest(message_hash)])
        with self.assertRaises(ThresholdNotMet):
            wallet.check_signatures(message_hash, blob)
        wallet.check_n_signatures(message_hash, blob, 1)

    def test_duplicate_signer(self):
        bob = Account.generate()
        wallet = self.owned_wallet([self.alice, bob], 2)
        message_hash = wallet.domain().digest(self.DATA_HASH)
        entry = self.alice.sign_digest(message_hash)
        with self.assertRaises(UnsortedOrDuplicateSigner):
            wallet.check_signatures(message_hash, signature_codec.encode([entry, entry]))

    def test_replay_against_other_wallet(self):
        other = self.owned_wallet([self.alice], 1)
        message_hash = self.wallet.domain().digest(self.DATA_HASH)
        blob = signature_codec.encode([self.alice.sign_digest(message_hash)])
        self.wallet.fallback().is_valid_signature(self.DATA_HASH, blob)
        with self.assertRaises(NotAnOwner):
            other.fallback().is_valid_signature(self.DATA_HASH, blob)

    def test_approve_hash_requires_owner(self):
        stranger = Account.generate()
        with self.assertRaises(NotAnOwner) as cm:
            self.wallet.approve_hash(stranger.address(), self.DATA_HASH)
        self.assertEqual(cm.exception.code, "GS030")

        self.wallet.approve_hash(self.alice.address(), self.DATA_HASH)
        self.assertTrue(self.wallet.approved_hashes(self.alice.address(), self.DATA_HASH))

    def test_approved_hash_by_caller(self):
        blob = signature_codec.encode([ApprovedHashSignature(self.alice.address())])
        with self.assertRaises(HashNotApproved):
            self.wallet.check_signatures(self.DATA_HASH, blob)
        self.wallet.check_signatures(self.DATA_HASH, blob, caller=self.alice.address())

    def test_approved_hash_through_handler_needs_approval(self):
        blob = signature_codec.encode([ApprovedHashSignature(self.alice.address())])
        bound = self.wallet.fallback()
        with self.assertRaises(HashNotApproved):
            bound.is_valid_signature(self.DATA_HASH, blob)
        self.wallet.approve_hash(self.alice.address(), bound.get_message_hash(self.DATA_HASH))
        self.assertEqual(bound.is_valid_signature(self.DATA_HASH, blob), EIP1271_MAGIC_VALUE)

    def test_nested_wallet(self):
        bob = Account.generate()
        registry = {}
        inner = Wallet(
            Address.from_int(0x1A2B3C),
            WalletConfig(self.CHAIN_ID, [bob.address()], 1, self.handler),
        )
        registry[inner.address] = inner
        outer = Wallet(
            Address.from_int(0xABCDEF),
            WalletConfig(self.CHAIN_ID, [self.alice.address(), inner.address], 2, self.handler),
            contract_validator=contract_owner_validator(registry),
        )

        outer_hash = outer.domain().digest(self.DATA_HASH)
        inner_hash = inner.domain().digest(outer_hash)
        payload = bob.sign_digest(inner_hash).signature.data()
        blob = encode_sorted(
            [
                (self.alice.address(), self.alice.sign_digest(outer_hash)),
                (inner.address, ContractSignature(inner.address, payload)),
            ]
        )
        self.assertEqual(
            outer.fallback().is_valid_signature(self.DATA_HASH, blob), EIP1271_MAGIC_VALUE
        )

        forged = encode_sorted(
            [
                (self.alice.address(), self.alice.sign_digest(outer_hash)),
                (inner.address, ContractSignature(inner.address, payload[:-1] + b"\x00")),
            ]
        )
        with self.assertRaises(ContractSignatureRejected):
            outer.fallback().is_valid_signature(self.DATA_HASH, forged)

    def test_unknown_contract_owner(self):
        contract = Address.from_int(0xDEAD)
        wallet = Wallet(
            Address.from_int(0xBEEF),
            WalletConfig(self.CHAIN_ID, [contract], 1, self.handler),
            contract_validator=contract_owner_validator({}),
        )
        blob = signature_codec.encode([ContractSignature(contract, b"")])
        with self.assertRaises(ContractSignatureRejected):
            wallet.check_signatures(self.DATA_HASH, blob)

    def test_approvals_snapshot_during_contract_call(self):
        contract = Address.from_int(0x10)
        late_owner = Address.from_str("0x" + "ff" * 20)
        store = ApprovalStore()

        def approving_validator(owner: Address, digest: bytes, data: bytes) -> bytes:
            store.approve_hash(late_owner, digest)
            return EIP1271_MAGIC_VALUE

        wallet = Wallet(
            Address.from_int(0xBEEF),
            WalletConfig(self.CHAIN_ID, [contract, late_owner], 2, self.handler),
            approvals=store,
            contract_validator=approving_validator,
        )
        blob = signature_codec.encode(
            [ContractSignature(contract, b""), ApprovedHashSignature(late_owner)]
        )
        with self.assertRaises(HashNotApproved):
            wallet.check_signatures(self.DATA_HASH, blob)
        wallet.check_signatures(self.DATA_HASH, blob)

    def test_zero_signature_slot(self):
        blob = signature_codec.encode(
            [EcdsaSignature(self.alice.sign_digest(self.DATA_HASH).signature)]
        )
        broken = blob[:32] + b"\x00" * 32 + blob[64:]
        with self.assertRaises(InvalidSignature):
            self.wallet.check_signatures(self.DATA_HASH, broken)

    def test_no_fallback_handler(self):
        wallet = Wallet(
            Address.from_int(0xBEEF), WalletConfig(self.CHAIN_ID, [self.alice.address()], 1)
        )
        with self.assertRaises(DirectCallNotSupported):
            wallet.fallback()


if __name__ == "__main__":
    unittest.main()
