# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Domain-separated message digests.

Owners never sign an application message directly. The message is first
wrapped into an EIP-712 ``SafeMessage(bytes message)`` struct and bound to the
chain id and the verifying wallet's address, so that a signature collected for
one wallet on one chain cannot be replayed against another.

Construction::

    separator   = hashStruct(EIP712Domain(chainId, verifyingContract))
    struct_hash = hashStruct(SafeMessage(message))
    digest      = keccak(0x19 || 0x01 || separator || struct_hash)

The separator and struct hash come from eth-account's EIP-712 encoder over
the typed data returned by :meth:`HashDomain.typed_data`.

Legacy ``eth_sign`` owners sign an additional EIP-191 wrapping of the digest,
available as :func:`eth_signed_message_hash`.
"""

from __future__ import annotations

import typing
import unittest
from dataclasses import dataclass

from eth_account.messages import SignableMessage, encode_typed_data
from eth_utils import keccak

from .address import Address

DOMAIN_SEPARATOR_TYPEHASH = bytes.fromhex(
    "47e79534a245952e8b16893a336b85a3d9ea9fa8c573f3d803afb92a79469218"
)
SAFE_MSG_TYPEHASH = bytes.fromhex(
    "60b3cbf8b4a223d68d641b3b6ddf9a298e7f33710cf3d3a9d1146b5a6150fbca"
)
EIP712_PREFIX = b"\x19\x01"
EIP712_TYPES = {
    "EIP712Domain": [
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "SafeMessage": [{"name": "message", "type": "bytes"}],
}
ETH_SIGNED_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n32"


def keccak256(data: bytes) -> bytes:
    return keccak(data)


def eth_signed_message_hash(digest: bytes) -> bytes:
    """Apply the EIP-191 personal message prefix used by ``eth_sign``."""
    if len(digest) != 32:
        raise ValueError(f"Expected a 32-byte digest, got {len(digest)}")
    return keccak256(ETH_SIGNED_MESSAGE_PREFIX + digest)


@dataclass(frozen=True)
class HashDomain:
    """EIP-712 domain of one wallet deployment.

    Attributes:
        chain_id: Chain identifier the wallet lives on.
        verifying_contract: Address of the wallet that verifies signatures.

    Examples:
        Digest for a 32-byte application hash::

            domain = HashDomain(1, wallet_address)
            message_hash = domain.digest(data_hash)
    """

    chain_id: int
    verifying_contract: Address

    def typed_data(self, message: bytes) -> typing.Dict[str, typing.Any]:
        """EIP-712 typed data of a ``SafeMessage`` in this domain."""
        return {
            "types": EIP712_TYPES,
            "primaryType": "SafeMessage",
            "domain": {
                "chainId": self.chain_id,
                "verifyingContract": str(self.verifying_contract),
            },
            "message": {"message": message},
        }

    def signable(self, message: bytes) -> SignableMessage:
        return encode_typed_data(full_message=self.typed_data(message))

    def separator(self) -> bytes:
        return bytes(self.signable(b"").header)

    def struct_hash(self, message: bytes, is_pre_hashed: bool = False) -> bytes:
        """Hash of the ``SafeMessage`` struct.

        When ``is_pre_hashed`` is set, ``message`` is taken to already be the
        Keccak-256 hash of the application payload and must be 32 bytes. The
        struct then encodes as the type hash followed by that word.
        """
        if is_pre_hashed:
            if len(message) != 32:
                raise ValueError("A pre-hashed message must be 32 bytes")
            return keccak256(SAFE_MSG_TYPEHASH + message)
        return bytes(self.signable(message).body)

    def encode(self, message: bytes, is_pre_hashed: bool = False) -> bytes:
        """Pre-image of the digest: ``0x1901 || separator || struct_hash``."""
        return EIP712_PREFIX + self.separator() + self.struct_hash(message, is_pre_hashed)

    def digest(self, message: bytes, is_pre_hashed: bool = False) -> bytes:
        return keccak256(self.encode(message, is_pre_hashed))


class Test(unittest.TestCase):
    WALLET = Address.from_str("0x5FbDB2315678afecb367f032d93F642f64180aa3")

    def test_type_hashes(self):
        self.assertEqual(
            keccak256(b"EIP712Domain(uint256 chainId,address verifyingContract)"),
            DOMAIN_SEPARATOR_TYPEHASH,
        )
        self.assertEqual(keccak256(b"SafeMessage(bytes message)"), SAFE_MSG_TYPEHASH)

    def test_keccak_vector(self):
        self.assertEqual(
            keccak256(b"").hex(),
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470",
        )

    def test_digest_shape(self):
        domain = HashDomain(31337, self.WALLET)
        encoded = domain.encode(b"\xba\xdd\xad")
        self.assertEqual(len(encoded), 66)
        self.assertEqual(encoded[:2], b"\x19\x01")
        self.assertEqual(encoded[2:34], domain.separator())
        self.assertEqual(domain.digest(b"\xba\xdd\xad"), keccak256(encoded))

    def test_pre_hashed(self):
        domain = HashDomain(1, self.WALLET)
        message = b"hello"
        self.assertEqual(
            domain.digest(message), domain.digest(keccak256(message), is_pre_hashed=True)
        )
        with self.assertRaises(ValueError):
            domain.digest(b"short", is_pre_hashed=True)

    def test_domain_binding(self):
        other = Address.from_str("0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512")
        message = keccak256(b"\xba\xdd\xad")
        base = HashDomain(1, self.WALLET).digest(message)
        self.assertNotEqual(base, HashDomain(1, other).digest(message))
        self.assertNotEqual(base, HashDomain(5, self.WALLET).digest(message))

    def test_eth_signed_message_hash(self):
        digest = keccak256(b"payload")
        self.assertEqual(
            eth_signed_message_hash(digest),
            keccak256(b"\x19Ethereum Signed Message:\n32" + digest),
        )
        with self.assertRaises(ValueError):
            eth_signed_message_hash(b"\x00")

    def test_separator_words(self):
        domain = HashDomain(31337, self.WALLET)
        expected = keccak256(
            DOMAIN_SEPARATOR_TYPEHASH
            + (31337).to_bytes(32, "big")
            + b"\x00" * 12
            + self.WALLET.address
        )
        self.assertEqual(domain.separator(), expected)

    def test_struct_hash_words(self):
        domain = HashDomain(31337, self.WALLET)
        data_hash = keccak256(b"\xba\xdd\xad")
        expected = keccak256(SAFE_MSG_TYPEHASH + keccak256(data_hash))
        self.assertEqual(domain.struct_hash(data_hash), expected)
        self.assertEqual(
            domain.struct_hash(keccak256(data_hash), is_pre_hashed=True), expected
        )
        self.assertEqual(
            domain.struct_hash(b""), keccak256(SAFE_MSG_TYPEHASH + keccak256(b""))
        )

    def test_typed_data_digest(self):
        domain = HashDomain(31337, self.WALLET)
        data_hash = keccak256(b"\xba\xdd\xad")
        signable = domain.signable(data_hash)
        self.assertEqual(signable.version, b"\x01")
        self.assertEqual(
            domain.digest(data_hash),
            keccak256(b"\x19" + signable.version + signable.header + signable.body),
        )


if __name__ == "__main__":
    unittest.main()
