# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import json
import os
import tempfile
import unittest

from . import secp256k1_ecdsa
from .address import Address
from .hash_domain import eth_signed_message_hash
from .signature_codec import EcdsaSignature, EthSignSignature


class Account:
    """An externally owned account: an address and the secp256k1 key behind it.

    Accounts are what wallet owners sign with. A signature produced here is
    not yet a wallet signature; it still has to be packed into a blob, ordered
    by owner address, with :func:`safe_signatures.signature_codec.encode_sorted`.

    Examples:
        Create and sign::

            from safe_signatures.account import Account

            alice = Account.generate()
            entry = alice.sign_digest(wallet.domain().digest(data_hash))

        Persistent storage::

            alice.store("./alice.json")
            restored = Account.load("./alice.json")
            assert alice == restored

    Note:
        The address is derived from the public key (last 20 bytes of its
        Keccak-256 hash), so the same private key always yields the same
        address.
    """

    account_address: Address
    private_key: secp256k1_ecdsa.PrivateKey

    def __init__(
        self, account_address: Address, private_key: secp256k1_ecdsa.PrivateKey
    ):
        """Initialize an Account with the given address and private key.

        The constructor does not check that the address belongs to the key.
        Use :meth:`generate` or :meth:`load_key` for guaranteed consistency.
        """
        self.account_address = account_address
        self.private_key = private_key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return (
            self.account_address == other.account_address
            and self.private_key == other.private_key
        )

    def __repr__(self) -> str:
        return f"Account({self.account_address})"

    @staticmethod
    def generate() -> Account:
        private_key = secp256k1_ecdsa.PrivateKey.random()
        return Account(private_key.address(), private_key)

    @staticmethod
    def load_key(key: str) -> Account:
        """Create an Account from a hex-encoded private key, with or without ``0x``."""
        private_key = secp256k1_ecdsa.PrivateKey.from_str(key)
        return Account(private_key.address(), private_key)

    @staticmethod
    def load(path: str) -> Account:
        """Load an Account from a JSON file written by :meth:`store`.

        Expected format::

            {
                "account_address": "0xf39F...2266",
                "private_key": "0xac09...ff80"
            }

        Raises:
            FileNotFoundError: If the file does not exist.
            KeyError: If a field is missing.
        """
        with open(path) as file:
            data = json.load(file)
        return Account(
            Address.from_str_relaxed(data["account_address"]),
            secp256k1_ecdsa.PrivateKey.from_str(data["private_key"]),
        )

    def store(self, path: str):
        data = {
            "account_address": str(self.account_address),
            "private_key": str(self.private_key),
        }
        with open(path, "w") as file:
            json.dump(data, file)

    def address(self) -> Address:
        return self.account_address

    def public_key(self) -> secp256k1_ecdsa.PublicKey:
        return self.private_key.public_key()

    def sign_digest(self, digest: bytes) -> EcdsaSignature:
        """Sign a wallet message hash directly (``v`` in 27/28)."""
        return EcdsaSignature(self.private_key.sign_digest(digest))

    def eth_sign_digest(self, digest: bytes) -> EthSignSignature:
        """Sign the ``eth_sign`` wrapping of a wallet message hash.

        This is what a wallet UI produces when it can only offer
        ``personal_sign``: the key signs
        ``keccak("\\x19Ethereum Signed Message:\\n32" || digest)`` and the slot
        carries ``v + 4`` so the verifier knows to apply the same prefix.
        """
        return EthSignSignature(
            self.private_key.sign_digest(eth_signed_message_hash(digest))
        )


class Test(unittest.TestCase):
    def test_load_and_store(self):
        (file, path) = tempfile.mkstemp()
        os.close(file)
        try:
            start = Account.generate()
            start.store(path)
            load = Account.load(path)
        finally:
            os.remove(path)

        self.assertEqual(start, load)
        self.assertEqual(start.address(), start.public_key().address())

    def test_load_key(self):
        account = Account.load_key(
            "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
        )
        self.assertEqual(
            str(account.address()), "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
        )

    def test_sign_digest(self):
        digest = b"\x21" * 32
        account = Account.generate()
        entry = account.sign_digest(digest)
        self.assertEqual(entry.signature.recover(digest).address(), account.address())

    def test_eth_sign_digest(self):
        digest = b"\x21" * 32
        account = Account.generate()
        entry = account.eth_sign_digest(digest)
        self.assertEqual(
            entry.signature.recover(eth_signed_message_hash(digest)).address(),
            account.address(),
        )

    def test_eth_sign_matches_eth_account(self):
        from eth_account import Account as EthAccount
        from eth_account.messages import encode_defunct

        digest = b"\x21" * 32
        account = Account.load_key(
            "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
        )
        signed = EthAccount.sign_message(
            encode_defunct(primitive=digest), str(account.private_key)
        )
        theirs = secp256k1_ecdsa.Signature(signed.r, signed.s, signed.v)
        self.assertEqual(
            theirs.recover(eth_signed_message_hash(digest)).address(),
            account.address(),
        )


if __name__ == "__main__":
    unittest.main()
