# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Packed signature blobs.

A blob starts with one fixed 65-byte slot per signer, ``r (32) || s (32) ||
v (1)``, followed by a free-form dynamic region. The last byte of each slot
selects how the other 64 bytes are read:

====  =====================  =====================================================
v     Entry                  r / s
====  =====================  =====================================================
0     ContractSignature      r = owner address, s = offset of ``len || payload``
1     ApprovedHashSignature  r = owner address, s = unused
27-28 EcdsaSignature         ECDSA signature over the digest
31-32 EthSignSignature       ECDSA signature over the EIP-191 wrapped digest, v+4
====  =====================  =====================================================

Any other ``v`` is malformed. Contract signature payloads must sit entirely
inside the blob and after the static slots.

Examples:
    Building a blob for two owners::

        blob = encode_sorted([
            (alice.address(), EcdsaSignature(alice.sign_digest(digest))),
            (bob.address(), ApprovedHashSignature(bob.address())),
        ])
        entries = decode(blob, 2)
"""

from __future__ import annotations

import unittest
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from . import secp256k1_ecdsa
from .abi import WORD_LENGTH, DecodeError, Deserializer, Serializer
from .address import Address, ParseAddressError
from .errors import MalformedSignature

SLOT_LENGTH = 65

CONTRACT_SIGNATURE_V = 0
APPROVED_HASH_V = 1
ECDSA_V = (27, 28)
ETH_SIGN_V = (31, 32)
ETH_SIGN_V_OFFSET = 4


@dataclass(frozen=True)
class EcdsaSignature:
    """An owner signature directly over the digest."""

    signature: secp256k1_ecdsa.Signature


@dataclass(frozen=True)
class EthSignSignature:
    """An owner signature over the ``eth_sign`` wrapped digest.

    ``signature.v`` holds the recovery value (27 or 28); the slot carries it
    shifted by four.
    """

    signature: secp256k1_ecdsa.Signature


@dataclass(frozen=True)
class ApprovedHashSignature:
    """A slot claimed by an owner that approved the digest beforehand."""

    owner: Address


@dataclass(frozen=True)
class ContractSignature:
    """A slot delegated to a contract owner's own signature validation."""

    owner: Address
    data: bytes


SignatureEntry = Union[
    EcdsaSignature, EthSignSignature, ApprovedHashSignature, ContractSignature
]


def decode(buffer: bytes, expected_count: int) -> List[SignatureEntry]:
    """Split ``buffer`` into exactly ``expected_count`` entries, in buffer order.

    Entries are not checked against the owner set or against each other; that
    is the verifier's job.

    Raises:
        MalformedSignature: If the static part is short, a slot carries an
            unknown ``v``, or a contract signature points outside the buffer.
    """
    static_length = expected_count * SLOT_LENGTH
    if len(buffer) < static_length:
        raise MalformedSignature(
            f"Expected at least {static_length} bytes for {expected_count} "
            f"signatures, got {len(buffer)}",
            "GS020",
        )

    entries: List[SignatureEntry] = []
    for position in range(expected_count):
        start = position * SLOT_LENGTH
        der = Deserializer(buffer[start : start + SLOT_LENGTH])
        r = der.uint256()
        s = der.uint256()
        v = der.u8()

        if v == CONTRACT_SIGNATURE_V:
            entries.append(_decode_contract_signature(buffer, static_length, r, s))
        elif v == APPROVED_HASH_V:
            entries.append(ApprovedHashSignature(_owner_from_word(r)))
        elif v in ECDSA_V:
            entries.append(EcdsaSignature(secp256k1_ecdsa.Signature(r, s, v)))
        elif v in ETH_SIGN_V:
            entries.append(
                EthSignSignature(
                    secp256k1_ecdsa.Signature(r, s, v - ETH_SIGN_V_OFFSET)
                )
            )
        else:
            raise MalformedSignature(
                f"Unrecognized signature type v={v} at position {position}"
            )
    return entries


def _owner_from_word(word: int) -> Address:
    try:
        return Address.from_int(word)
    except ParseAddressError as e:
        raise MalformedSignature(f"Slot does not hold an address: {word:#x}") from e


def _decode_contract_signature(
    buffer: bytes, static_length: int, r: int, s: int
) -> ContractSignature:
    owner = _owner_from_word(r)
    offset = s
    if offset < static_length:
        raise MalformedSignature(
            "Contract signature data points inside the static part", "GS021"
        )
    if offset + WORD_LENGTH > len(buffer):
        raise MalformedSignature(
            "Contract signature length word is out of bounds", "GS022"
        )
    try:
        data = Deserializer(buffer[offset:]).to_bytes()
    except DecodeError as e:
        raise MalformedSignature(
            "Contract signature data is out of bounds", "GS023"
        ) from e
    return ContractSignature(owner, data)


def encode(entries: Sequence[SignatureEntry]) -> bytes:
    """Pack entries, in the given order, into a blob ``decode`` accepts."""
    static_length = len(entries) * SLOT_LENGTH
    ser = Serializer()
    dynamic = Serializer()

    for entry in entries:
        if isinstance(entry, EcdsaSignature):
            ser.fixed_bytes(entry.signature.data())
        elif isinstance(entry, EthSignSignature):
            signature = entry.signature
            ser.uint256(signature.r)
            ser.uint256(signature.s)
            ser.u8(signature.v + ETH_SIGN_V_OFFSET)
        elif isinstance(entry, ApprovedHashSignature):
            ser.struct(entry.owner)
            ser.uint256(0)
            ser.u8(APPROVED_HASH_V)
        elif isinstance(entry, ContractSignature):
            ser.struct(entry.owner)
            ser.uint256(static_length + len(dynamic.output()))
            ser.u8(CONTRACT_SIGNATURE_V)
            dynamic.to_bytes(entry.data)
        else:
            raise TypeError(f"Unsupported signature entry {entry!r}")

    return ser.output() + dynamic.output()


def encode_sorted(signatures: Sequence[Tuple[Address, SignatureEntry]]) -> bytes:
    """Order ``(owner, entry)`` pairs by ascending owner address and pack them."""
    ordered = sorted(signatures, key=lambda item: item[0])
    return encode([entry for _, entry in ordered])


class Test(unittest.TestCase):
    DIGEST = b"\x5a" * 32

    def test_mixed_entries(self):
        key = secp256k1_ecdsa.PrivateKey.random()
        signature = key.sign_digest(self.DIGEST)
        contract_owner = Address.from_int(0xC0FFEE)
        approving_owner = Address.from_int(0xA11CE)
        entries: List[SignatureEntry] = [
            EcdsaSignature(signature),
            ContractSignature(contract_owner, b"\x01\x02\x03"),
            EthSignSignature(signature),
            ApprovedHashSignature(approving_owner),
            ContractSignature(contract_owner, b""),
        ]
        blob = encode(entries)

        self.assertEqual(len(blob), 5 * SLOT_LENGTH + 32 + 3 + 32)
        self.assertEqual(blob[SLOT_LENGTH * 2 + 64], signature.v + 4)
        self.assertEqual(decode(blob, 5), entries)

    def test_decode_prefix_only(self):
        key = secp256k1_ecdsa.PrivateKey.random()
        entry = EcdsaSignature(key.sign_digest(self.DIGEST))
        blob = encode([entry, ApprovedHashSignature(Address.from_int(9))])
        self.assertEqual(decode(blob, 1), [entry])
        self.assertEqual(decode(blob, 0), [])

    def test_short_buffer(self):
        with self.assertRaises(MalformedSignature) as cm:
            decode(bytes.fromhex("deaddeaddeaddead"), 1)
        self.assertEqual(cm.exception.code, "GS020")

    def test_unknown_type(self):
        for v in (2, 26, 29, 30, 33, 255):
            slot = b"\x00" * 31 + b"\x01" + b"\x00" * 32 + bytes([v])
            with self.assertRaises(MalformedSignature):
                decode(slot, 1)

    def test_contract_offset_inside_static_part(self):
        ser = Serializer()
        ser.struct(Address.from_int(0xC0FFEE))
        ser.uint256(SLOT_LENGTH - 1)
        ser.u8(CONTRACT_SIGNATURE_V)
        ser.uint256(0)
        with self.assertRaises(MalformedSignature) as cm:
            decode(ser.output(), 1)
        self.assertEqual(cm.exception.code, "GS021")

    def test_contract_length_word_out_of_bounds(self):
        ser = Serializer()
        ser.struct(Address.from_int(0xC0FFEE))
        ser.uint256(SLOT_LENGTH)
        ser.u8(CONTRACT_SIGNATURE_V)
        ser.fixed_bytes(b"\x00" * 31)
        with self.assertRaises(MalformedSignature) as cm:
            decode(ser.output(), 1)
        self.assertEqual(cm.exception.code, "GS022")

    def test_contract_data_out_of_bounds(self):
        ser = Serializer()
        ser.struct(Address.from_int(0xC0FFEE))
        ser.uint256(SLOT_LENGTH)
        ser.u8(CONTRACT_SIGNATURE_V)
        ser.uint256(4)
        ser.fixed_bytes(b"\x00" * 3)
        with self.assertRaises(MalformedSignature) as cm:
            decode(ser.output(), 1)
        self.assertEqual(cm.exception.code, "GS023")

    def test_owner_word_with_high_bits(self):
        slot = b"\x01" + b"\x00" * 63 + bytes([APPROVED_HASH_V])
        with self.assertRaises(MalformedSignature):
            decode(slot, 1)

    def test_encode_sorted(self):
        high = Address.from_int(0x200)
        low = Address.from_int(0x100)
        blob = encode_sorted(
            [(high, ApprovedHashSignature(high)), (low, ApprovedHashSignature(low))]
        )
        self.assertEqual(
            decode(blob, 2), [ApprovedHashSignature(low), ApprovedHashSignature(high)]
        )


if __name__ == "__main__":
    unittest.main()
