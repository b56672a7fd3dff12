# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
EIP-1271 compatibility fallback handler.

A wallet answers ``isValidSignature`` queries by forwarding them to its
fallback handler, which runs in the wallet's own context: it reads the
wallet's owners, approvals and domain, never its own. The handler therefore
refuses to do anything unless it is reached through a wallet that has it
installed.

Two entry points are exposed:

- :meth:`CompatibilityFallbackHandler.is_valid_signature` takes a 32-byte data
  hash and answers with ``0x1626ba7e``.
- :meth:`CompatibilityFallbackHandler.is_valid_signature_legacy` takes an
  arbitrary byte message and answers with ``0x20c13b0b``.

In both, the message is wrapped into the wallet's ``SafeMessage`` digest. An
empty signature means "was this message signed on-chain by the wallet?";
anything else is checked as a threshold of owner signatures.

The handler checks signatures with the wallet itself as the caller, so an
approved-hash slot reached through EIP-1271 always needs a recorded approval.

Examples:
    Verifying through a wallet::

        handler = CompatibilityFallbackHandler()
        wallet = Wallet(address, WalletConfig(1, owners, 2, handler))
        assert wallet.fallback().is_valid_signature(data_hash, blob) == EIP1271_MAGIC_VALUE
"""

from __future__ import annotations

import logging
import unittest
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .address import Address
from .errors import (
    DirectCallNotSupported,
    HashNotApproved,
    MalformedSignature,
    SignatureVerificationError,
)
from .verifier import EIP1271_MAGIC_VALUE

if TYPE_CHECKING:
    from .wallet import Wallet

LEGACY_EIP1271_MAGIC_VALUE = bytes.fromhex("20c13b0b")


@dataclass(frozen=True)
class WalletContext:
    """Execution context of a fallback call.

    Attributes:
        wallet: The wallet that forwarded the call.
    """

    wallet: Wallet


class CompatibilityFallbackHandler:
    """Stateless signature validation on behalf of a wallet."""

    def __str__(self) -> str:
        return "CompatibilityFallbackHandler"

    def is_valid_signature(
        self, context: Optional[WalletContext], data_hash: bytes, signature: bytes
    ) -> bytes:
        """Validate ``signature`` for a 32-byte ``data_hash``.

        The hash is treated as a 32-byte message: the digest owners sign is
        the wallet's ``SafeMessage`` digest over it.

        Returns:
            ``0x1626ba7e``; every failure raises.

        Raises:
            DirectCallNotSupported: If not called through a wallet using this
                handler.
            HashNotApproved: If ``signature`` is empty and the message was
                not signed by the wallet.
            SignatureVerificationError: If the owner signatures are rejected.
        """
        if len(data_hash) != 32:
            raise MalformedSignature(
                f"Expected a 32-byte data hash, got {len(data_hash)}"
            )
        self._check_message(context, data_hash, signature)
        return EIP1271_MAGIC_VALUE

    def is_valid_signature_legacy(
        self, context: Optional[WalletContext], message: bytes, signature: bytes
    ) -> bytes:
        """Validate ``signature`` for an arbitrary ``message``.

        Returns:
            ``0x20c13b0b``; every failure raises.
        """
        self._check_message(context, message, signature)
        return LEGACY_EIP1271_MAGIC_VALUE

    def get_message_hash(self, context: Optional[WalletContext], message: bytes) -> bytes:
        """Message hash of ``message`` for the calling wallet."""
        return self.get_message_hash_for_safe(self._wallet(context), message)

    def get_message_hash_for_safe(self, wallet: Wallet, message: bytes) -> bytes:
        return wallet.domain().digest(message)

    def encode_message_data_for_safe(self, wallet: Wallet, message: bytes) -> bytes:
        """Pre-image of the message hash: ``0x1901 || separator || struct_hash``."""
        return wallet.domain().encode(message)

    def _check_message(
        self, context: Optional[WalletContext], message: bytes, signature: bytes
    ):
        wallet = self._wallet(context)
        message_hash = self.get_message_hash_for_safe(wallet, message)

        if len(signature) == 0:
            if not wallet.signed_messages(message_hash):
                raise HashNotApproved("Hash not approved")
            logging.debug(f"Message 0x{message_hash.hex()} signed by {wallet}")
            return

        # The wallet is the caller of its own check, never one of its owners.
        wallet.check_signatures(message_hash, signature, caller=wallet.address)

    def _wallet(self, context: Optional[WalletContext]) -> Wallet:
        if context is None:
            raise DirectCallNotSupported()
        if context.wallet.config.fallback_handler is not self:
            raise DirectCallNotSupported(
                f"{context.wallet} does not use this fallback handler"
            )
        return context.wallet


class BoundHandler:
    """A fallback handler reached through a wallet.

    This is what the wallet hands to external callers: the same entry points
    as :class:`CompatibilityFallbackHandler`, with the context filled in.
    """

    handler: CompatibilityFallbackHandler
    context: WalletContext

    def __init__(self, handler: CompatibilityFallbackHandler, context: WalletContext):
        self.handler = handler
        self.context = context

    def is_valid_signature(self, data_hash: bytes, signature: bytes) -> bytes:
        return self.handler.is_valid_signature(self.context, data_hash, signature)

    def is_valid_signature_legacy(self, message: bytes, signature: bytes) -> bytes:
        return self.handler.is_valid_signature_legacy(self.context, message, signature)

    def get_message_hash(self, message: bytes) -> bytes:
        return self.handler.get_message_hash(self.context, message)


class Test(unittest.TestCase):
    def setUp(self):
        from .account import Account
        from .wallet import Wallet, WalletConfig

        self.alice = Account.generate()
        self.handler = CompatibilityFallbackHandler()
        self.wallet = Wallet(
            Address.from_int(0x5AFE),
            WalletConfig(31337, [self.alice.address()], 1, self.handler),
        )

    def test_direct_call(self):
        with self.assertRaises(DirectCallNotSupported):
            self.handler.is_valid_signature(None, b"\x00" * 32, b"")
        with self.assertRaises(DirectCallNotSupported):
            self.handler.get_message_hash(None, b"")

    def test_foreign_handler(self):
        other = CompatibilityFallbackHandler()
        with self.assertRaises(DirectCallNotSupported):
            other.is_valid_signature(WalletContext(self.wallet), b"\x00" * 32, b"")

    def test_message_hash(self):
        bound = self.wallet.fallback()
        message = b"\xba\xdd\xad"
        self.assertEqual(bound.get_message_hash(message), self.wallet.domain().digest(message))
        self.assertEqual(
            self.handler.encode_message_data_for_safe(self.wallet, message),
            self.wallet.domain().encode(message),
        )

    def test_legacy_variant(self):
        message = b"legacy payload"
        message_hash = self.handler.get_message_hash_for_safe(self.wallet, message)
        blob = self.alice.sign_digest(message_hash).signature.data()
        self.assertEqual(
            self.wallet.fallback().is_valid_signature_legacy(message, blob),
            LEGACY_EIP1271_MAGIC_VALUE,
        )

    def test_rejects_non_hash(self):
        with self.assertRaises(MalformedSignature):
            self.wallet.fallback().is_valid_signature(b"\x01", b"")
        with self.assertRaises(SignatureVerificationError):
            self.wallet.fallback().is_valid_signature(b"\x01" * 33, b"\x00" * 65)


if __name__ == "__main__":
    unittest.main()
