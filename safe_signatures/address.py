# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Owner and wallet addresses.

An address is a 20-byte identifier. Addresses are compared by numeric value,
which is what the signature verifier relies on when it demands that signers
appear in strictly ascending order.

Key features:
- Strict parsing (``0x`` + 40 hex chars, EIP-55 checksum enforced for mixed case)
- Relaxed parsing (optional prefix, short values left-padded)
- Derivation from an uncompressed secp256k1 public key
- Total ordering, hashing and ABI word serialization

Examples:
    Basic address operations::

        addr = Address.from_str("0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266")
        owner = Address.from_key(private_key.public_key())
        assert Address.ZERO < owner
"""

from __future__ import annotations

import typing
import unittest

from eth_utils import is_checksum_address, keccak, to_checksum_address

from .abi import Deserializable, Deserializer, Serializable, Serializer

if typing.TYPE_CHECKING:
    from .secp256k1_ecdsa import PublicKey


class ParseAddressError(Exception):
    """Exception raised when an address string or byte sequence is invalid.

    Examples:
        Catching parse errors::

            try:
                addr = Address.from_str("invalid")
            except ParseAddressError as e:
                print(f"Failed to parse address: {e}")
    """


class Address(Deserializable, Serializable):
    """A 20-byte account or contract address.

    Attributes:
        address: The raw 20-byte address data
        LENGTH: The required byte length of all addresses (20)
        ZERO: The zero address, never a valid signer
        SENTINEL: ``0x...01``, reserved by the owner list and never an owner
    """

    address: bytes
    LENGTH: int = 20

    ZERO: Address
    SENTINEL: Address

    def __init__(self, address: bytes):
        """Initialize an Address with raw address bytes.

        Raises:
            ParseAddressError: If the address is not exactly 20 bytes.
        """
        if len(address) != Address.LENGTH:
            raise ParseAddressError("Expected address of length 20")
        self.address = bytes(address)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self.address == other.address

    def __lt__(self, other: Address) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self.address < other.address

    def __gt__(self, other: Address) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self.address > other.address

    def __hash__(self) -> int:
        return hash(self.address)

    def __int__(self) -> int:
        return int.from_bytes(self.address, "big")

    def __str__(self):
        """Get the EIP-55 checksummed representation of this address."""
        return to_checksum_address("0x" + self.address.hex())

    def __repr__(self):
        return self.__str__()

    @staticmethod
    def from_str(address: str) -> Address:
        """Create an Address from a hex string with strict validation.

        Accepted formats:
        - ``0x`` + exactly 40 lowercase or uppercase hex characters
        - ``0x`` + exactly 40 mixed-case hex characters forming a valid
          EIP-55 checksum

        Raises:
            ParseAddressError: On a missing prefix, wrong length or a bad
                checksum.
        """
        if not address.startswith("0x"):
            raise ParseAddressError("Hex string must start with a leading 0x.")
        body = address[2:]
        if len(body) != Address.LENGTH * 2:
            raise ParseAddressError(
                "The address must be represented as 0x + 40 chars."
            )
        mixed_case = body != body.lower() and body != body.upper()
        if mixed_case and not is_checksum_address(address):
            raise ParseAddressError(f"Invalid EIP-55 checksum: {address}")
        return Address.from_str_relaxed(address)

    @staticmethod
    def from_str_relaxed(address: str) -> Address:
        """Create an Address from a hex string, padding short values.

        Examples:
            Short and prefix-less forms::

                Address.from_str_relaxed("0x1") == Address.SENTINEL
                Address.from_str_relaxed("f39fd6e51aad88f6f4ce6ab8827279cfffb92266")

        Raises:
            ParseAddressError: If the string is empty, too long or not hex.
        """
        addr = address[2:] if address[0:2] == "0x" else address
        if len(addr) < 1 or len(addr) > Address.LENGTH * 2:
            raise ParseAddressError(
                "Hex string is not between 1 and 40 characters long."
            )
        try:
            return Address(bytes.fromhex(addr.rjust(Address.LENGTH * 2, "0")))
        except ValueError as e:
            raise ParseAddressError(f"Invalid hex string: {address}") from e

    @staticmethod
    def from_int(value: int) -> Address:
        if not 0 <= value < 2 ** (Address.LENGTH * 8):
            raise ParseAddressError(f"{value} does not fit in 20 bytes")
        return Address(value.to_bytes(Address.LENGTH, "big"))

    @staticmethod
    def from_key(key: PublicKey) -> Address:
        """Derive the address controlled by a secp256k1 public key.

        The address is the last 20 bytes of the Keccak-256 hash of the 64-byte
        uncompressed public key (without the ``0x04`` prefix).
        """
        raw = key.to_crypto_bytes()
        if len(raw) == 65:
            raw = raw[1:]
        return Address(keccak(raw)[-Address.LENGTH :])

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Address:
        return Address(deserializer.address())

    def serialize(self, serializer: Serializer):
        serializer.address(self.address)


Address.ZERO = Address(b"\x00" * Address.LENGTH)
Address.SENTINEL = Address(b"\x00" * (Address.LENGTH - 1) + b"\x01")


class Test(unittest.TestCase):
    def test_from_str(self):
        checksummed = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
        addr = Address.from_str(checksummed)
        self.assertEqual(str(addr), checksummed)
        self.assertEqual(addr, Address.from_str(checksummed.lower()))
        self.assertEqual(addr, Address.from_str("0x" + checksummed[2:].upper()))

    def test_from_str_bad_checksum(self):
        with self.assertRaises(ParseAddressError):
            Address.from_str("0xF39Fd6e51aad88F6F4ce6aB8827279cffFb92266")

    def test_from_str_requires_prefix_and_length(self):
        with self.assertRaises(ParseAddressError):
            Address.from_str("f39fd6e51aad88f6f4ce6ab8827279cfffb92266")
        with self.assertRaises(ParseAddressError):
            Address.from_str("0x1")

    def test_from_str_relaxed(self):
        self.assertEqual(Address.from_str_relaxed("0x1"), Address.SENTINEL)
        self.assertEqual(Address.from_str_relaxed("0"), Address.ZERO)
        with self.assertRaises(ParseAddressError):
            Address.from_str_relaxed("0x")
        with self.assertRaises(ParseAddressError):
            Address.from_str_relaxed("0xzz")
        with self.assertRaises(ParseAddressError):
            Address.from_str_relaxed("0x" + "1" * 41)

    def test_ordering(self):
        low = Address.from_int(5)
        high = Address.from_int(0x100)
        self.assertLess(low, high)
        self.assertGreater(high, low)
        self.assertFalse(low < low)
        self.assertEqual(sorted([high, low]), [low, high])
        self.assertEqual(int(high), 0x100)

    def test_hashable(self):
        owners = {Address.from_int(7), Address.from_int(7)}
        self.assertEqual(len(owners), 1)

    def test_length(self):
        with self.assertRaises(ParseAddressError):
            Address(b"\x00" * 32)
        with self.assertRaises(ParseAddressError):
            Address.from_int(2**160)

    def test_serialization(self):
        addr = Address.from_str("0x70997970C51812dc3A010C7d01b50e20d17dc79C")
        ser = Serializer()
        addr.serialize(ser)
        self.assertEqual(ser.output()[:12], b"\x00" * 12)
        self.assertEqual(Address.deserialize(Deserializer(ser.output())), addr)
        self.assertEqual(addr.to_bytes(), ser.output())
        self.assertEqual(Address.from_bytes(ser.output()), addr)


if __name__ == "__main__":
    unittest.main()
