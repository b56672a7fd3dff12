# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
secp256k1 ECDSA keys and recoverable signatures.

Owners that are externally owned accounts sign 32-byte digests with
secp256k1. The wallet never receives their public keys; it recovers the
signer from ``(r, s, v)`` and compares the derived address against the owner
set, exactly like the ``ecrecover`` precompile.

Key Features:
- **Deterministic Signatures**: RFC 6979 deterministic signing for reproducibility
- **Signature Normalization**: Canonical signatures (s <= n/2)
- **Recoverable Signatures**: ``v`` in {27, 28} selects the recovered key
- **Address Derivation**: Keccak-256 based, via :class:`Address`

Examples:
    Sign and recover::

        from safe_signatures.secp256k1_ecdsa import PrivateKey

        private_key = PrivateKey.random()
        signature = private_key.sign_digest(digest)
        assert signature.recover(digest) == private_key.public_key()

Note:
    This implementation uses the ecdsa library for core cryptographic
    operations. Digests are signed as-is; hashing is the caller's job.
"""

from __future__ import annotations

import hashlib
import unittest
from typing import List

from ecdsa import SECP256k1, SigningKey, VerifyingKey, util

from .address import Address
from .errors import InvalidSignature

CURVE_ORDER = SECP256k1.generator.order()


class PrivateKey:
    """secp256k1 ECDSA private key.

    Attributes:
        LENGTH: The byte length of secp256k1 private keys (32)
        key: The underlying ECDSA signing key object

    Examples:
        Create from existing key material::

            private_key = PrivateKey.from_hex("0xac0974bec39a17e3...")
            signature = private_key.sign_digest(digest)
    """

    LENGTH: int = 32

    key: SigningKey

    def __init__(self, key: SigningKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.key.to_string() == other.key.to_string()

    def __str__(self):
        return self.hex()

    @staticmethod
    def from_hex(value: str | bytes) -> PrivateKey:
        """Create a private key from a hex string (with or without 0x) or raw bytes.

        Raises:
            Exception: If the key length is not 32 bytes.
        """
        if isinstance(value, str):
            value = bytes.fromhex(value[2:] if value[0:2] == "0x" else value)
        if len(value) != PrivateKey.LENGTH:
            raise Exception("Length mismatch")
        return PrivateKey(SigningKey.from_string(value, SECP256k1, hashlib.sha256))

    @staticmethod
    def from_str(value: str) -> PrivateKey:
        return PrivateKey.from_hex(value)

    def hex(self) -> str:
        return f"0x{self.key.to_string().hex()}"

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verifying_key)

    @staticmethod
    def random() -> PrivateKey:
        return PrivateKey(SigningKey.generate(curve=SECP256k1, hashfunc=hashlib.sha256))

    def sign_digest(self, digest: bytes) -> Signature:
        """Sign a 32-byte digest and return a recoverable signature.

        The nonce is derived with RFC 6979, ``s`` is normalized to the lower
        half of the curve order, and ``v`` is chosen so that recovery over the
        same digest yields this key.

        Raises:
            ValueError: If the digest is not 32 bytes.
        """
        if len(digest) != 32:
            raise ValueError(f"Expected a 32-byte digest, got {len(digest)}")
        sig = self.key.sign_digest_deterministic(
            digest, hashfunc=hashlib.sha256, sigencode=util.sigencode_string
        )
        r, s = util.sigdecode_string(sig, CURVE_ORDER)
        # The signature is valid for both s and -s, normalization ensures that only s < n // 2 is valid
        if s > (CURVE_ORDER // 2):
            s = CURVE_ORDER - s

        own_key = self.key.verifying_key.to_string()
        for recovery_id, candidate in enumerate(_recover_candidates(digest, r, s)):
            if candidate.to_string() == own_key:
                return Signature(r, s, 27 + recovery_id)
        raise Exception("Unable to determine recovery id")

    def address(self) -> Address:
        return self.public_key().address()


class PublicKey:
    """secp256k1 ECDSA public key in uncompressed form.

    Attributes:
        LENGTH: The byte length of uncompressed secp256k1 public keys (64)
        LENGTH_WITH_PREFIX_LENGTH: Length including 0x04 prefix byte (65)
        key: The underlying ECDSA verification key object
    """

    LENGTH: int = 64
    LENGTH_WITH_PREFIX_LENGTH: int = 65

    key: VerifyingKey

    def __init__(self, key: VerifyingKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.key.to_string() == other.key.to_string()

    def __str__(self) -> str:
        return self.hex()

    @staticmethod
    def from_str(value: str) -> PublicKey:
        """Create a public key from a hex string of 64 or 65 (0x04-prefixed) bytes.

        Raises:
            Exception: If the key length is invalid.
        """
        if value[0:2] == "0x":
            value = value[2:]
        # We are measuring hex values which are twice the length of their binary counterpart.
        if (
            len(value) != PublicKey.LENGTH * 2
            and len(value) != PublicKey.LENGTH_WITH_PREFIX_LENGTH * 2
        ):
            raise Exception("Length mismatch")
        return PublicKey(
            VerifyingKey.from_string(bytes.fromhex(value), SECP256k1, hashlib.sha256)
        )

    def hex(self) -> str:
        return f"0x04{self.key.to_string().hex()}"

    def to_crypto_bytes(self) -> bytes:
        """Get the 65-byte representation with the 0x04 prefix."""
        return b"\x04" + self.key.to_string()

    def address(self) -> Address:
        return Address.from_key(self)

    def verify_digest(self, digest: bytes, signature: Signature) -> bool:
        """Check that ``signature`` over ``digest`` recovers to this key.

        Returns:
            True if the signature recovers to this public key, False otherwise.
        """
        try:
            return signature.recover(digest) == self
        except InvalidSignature:
            return False


class Signature:
    """Recoverable secp256k1 signature ``(r, s, v)``.

    The wire form is 65 bytes: ``r (32) || s (32) || v (1)``, the layout used
    by ``eth_sign`` and EIP-712 signers.

    Attributes:
        LENGTH: The byte length of the encoded signature (65)
    """

    LENGTH: int = 65

    r: int
    s: int
    v: int

    def __init__(self, r: int, s: int, v: int):
        self.r = r
        self.s = s
        self.v = v

    def __eq__(self, other: object):
        if not isinstance(other, Signature):
            return NotImplemented
        return (self.r, self.s, self.v) == (other.r, other.s, other.v)

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"Signature(r={self.r:#x}, s={self.s:#x}, v={self.v})"

    def hex(self) -> str:
        return f"0x{self.data().hex()}"

    @staticmethod
    def from_bytes(value: bytes) -> Signature:
        if len(value) != Signature.LENGTH:
            raise Exception("Length mismatch")
        return Signature(
            int.from_bytes(value[0:32], "big"),
            int.from_bytes(value[32:64], "big"),
            value[64],
        )

    @staticmethod
    def from_str(value: str) -> Signature:
        if value[0:2] == "0x":
            value = value[2:]
        if len(value) != Signature.LENGTH * 2:
            raise Exception("Length mismatch")
        return Signature.from_bytes(bytes.fromhex(value))

    def data(self) -> bytes:
        return (
            self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.v])
        )

    def recover(self, digest: bytes) -> PublicKey:
        """Recover the public key that produced this signature over ``digest``.

        Raises:
            InvalidSignature: If ``v`` is not 27 or 28, ``r`` or ``s`` are out
                of range, or no curve point matches ``r``.
        """
        if self.v not in (27, 28):
            raise InvalidSignature(f"Unsupported recovery value v={self.v}")
        if not (0 < self.r < CURVE_ORDER and 0 < self.s < CURVE_ORDER):
            raise InvalidSignature("Signature scalars out of range")
        try:
            candidates = _recover_candidates(digest, self.r, self.s)
        except Exception as e:
            raise InvalidSignature(f"Unable to recover signer: {e}") from e
        return PublicKey(candidates[self.v - 27])


def _recover_candidates(digest: bytes, r: int, s: int) -> List[VerifyingKey]:
    """Both keys that could have produced ``(r, s)``, even-y point first."""
    return VerifyingKey.from_public_key_recovery_with_digest(
        util.sigencode_string(r, s, CURVE_ORDER),
        digest,
        SECP256k1,
        hashfunc=hashlib.sha256,
        sigdecode=util.sigdecode_string,
    )


class Test(unittest.TestCase):
    # Well-known development key, address 0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266
    PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"

    def test_address_vector(self):
        private_key = PrivateKey.from_str(self.PRIVATE_KEY)
        self.assertEqual(
            str(private_key.address()), "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
        )
        other = PrivateKey.from_str(
            "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
        )
        self.assertEqual(
            str(other.address()), "0x70997970C51812dc3A010C7d01b50e20d17dc79C"
        )

    def test_private_key_from_hex(self):
        from_str = PrivateKey.from_str(self.PRIVATE_KEY)
        from_bytes = PrivateKey.from_hex(bytes.fromhex(self.PRIVATE_KEY[2:]))
        self.assertEqual(from_str, from_bytes)
        self.assertEqual(from_str.hex(), self.PRIVATE_KEY)
        with self.assertRaises(Exception):
            PrivateKey.from_hex(b"\x01" * 31)

    def test_sign_and_recover(self):
        digest = hashlib.sha256(b"test_message").digest()
        private_key = PrivateKey.random()
        signature = private_key.sign_digest(digest)

        self.assertIn(signature.v, (27, 28))
        self.assertLessEqual(signature.s, CURVE_ORDER // 2)
        self.assertEqual(signature.recover(digest), private_key.public_key())
        self.assertTrue(private_key.public_key().verify_digest(digest, signature))

    def test_deterministic(self):
        digest = hashlib.sha256(b"deterministic").digest()
        private_key = PrivateKey.from_str(self.PRIVATE_KEY)
        self.assertEqual(private_key.sign_digest(digest), private_key.sign_digest(digest))

    def test_wrong_digest_recovers_other_key(self):
        private_key = PrivateKey.random()
        signature = private_key.sign_digest(b"\x01" * 32)
        self.assertFalse(
            private_key.public_key().verify_digest(b"\x02" * 32, signature)
        )

    def test_recover_rejects_bad_values(self):
        digest = b"\x07" * 32
        signature = PrivateKey.random().sign_digest(digest)
        with self.assertRaises(InvalidSignature):
            Signature(signature.r, signature.s, 29).recover(digest)
        with self.assertRaises(InvalidSignature):
            Signature(0, signature.s, signature.v).recover(digest)
        with self.assertRaises(InvalidSignature):
            Signature(signature.r, CURVE_ORDER, signature.v).recover(digest)

    def test_encoding(self):
        signature = PrivateKey.random().sign_digest(b"\x03" * 32)
        self.assertEqual(len(signature.data()), Signature.LENGTH)
        self.assertEqual(Signature.from_bytes(signature.data()), signature)
        self.assertEqual(Signature.from_str(signature.hex()), signature)

    def test_public_key_from_str(self):
        public_key = PrivateKey.from_str(self.PRIVATE_KEY).public_key()
        self.assertEqual(PublicKey.from_str(public_key.hex()), public_key)
        self.assertEqual(len(public_key.to_crypto_bytes()), 65)


if __name__ == "__main__":
    unittest.main()
