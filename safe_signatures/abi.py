# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Solidity ABI word codec for the wallet's signature format.

The wallet only ever needs a small, static subset of the contract ABI: 32-byte
big-endian words (``uint256``, ``bytes32``, left-padded ``address``), raw fixed
byte runs, and the length-prefixed byte strings that contract signatures embed
in the dynamic part of a signature blob.

The module contains:
- Protocol interfaces for serializable and deserializable objects
- Deserializer class for reading words from a buffer
- Serializer class for writing words

Examples:
    Encoding a contract signature slot::

        from safe_signatures.abi import Serializer

        ser = Serializer()
        ser.address(owner.address)
        ser.uint256(offset)
        ser.u8(0)
        slot = ser.output()

    Reading a length-prefixed payload at an offset::

        der = Deserializer(blob[offset:])
        payload = der.to_bytes()
"""

from __future__ import annotations

import io
import typing
import unittest

from typing_extensions import Protocol

WORD_LENGTH = 32
MAX_U8 = 2**8 - 1
MAX_U160 = 2**160 - 1
MAX_U256 = 2**256 - 1


class DecodeError(Exception):
    """The input ended early or held a value outside its type's range."""


class Deserializable(Protocol):
    """Protocol for objects that can be read from ABI words."""

    @classmethod
    def from_bytes(cls, indata: bytes) -> Deserializable:
        der = Deserializer(indata)
        return der.struct(cls)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Deserializable:
        ...


class Serializable(Protocol):
    """Protocol for objects that can be written as ABI words."""

    def to_bytes(self) -> bytes:
        ser = Serializer()
        ser.struct(self)
        return ser.output()

    def serialize(self, serializer: Serializer):
        ...


class Deserializer:
    """Reads big-endian ABI words from a byte buffer.

    Attributes:
        _input: Internal BytesIO stream for reading data.
        _length: Total length of the input data.

    Examples:
        Reading a signature slot::

            der = Deserializer(slot)
            r = der.uint256()
            s = der.uint256()
            v = der.u8()
    """

    _input: io.BytesIO
    _length: int

    def __init__(self, data: bytes):
        self._length = len(data)
        self._input = io.BytesIO(data)

    def remaining(self) -> int:
        """Get the number of bytes remaining in the input stream."""
        return self._length - self._input.tell()

    def to_bytes(self) -> bytes:
        """Read a 32-byte length word followed by that many raw bytes.

        Raises:
            DecodeError: If the declared length runs past the end of input.
        """
        length = self.uint256()
        if length > self.remaining():
            raise DecodeError(
                f"Declared length {length} exceeds remaining {self.remaining()}"
            )
        return self._read(length)

    def fixed_bytes(self, length: int) -> bytes:
        return self._read(length)

    def struct(self, struct: typing.Any) -> typing.Any:
        return struct.deserialize(self)

    def u8(self) -> int:
        """Read a single unpadded byte, as used for a signature's ``v``."""
        return self._read(1)[0]

    def uint256(self) -> int:
        return int.from_bytes(self._read(WORD_LENGTH), byteorder="big", signed=False)

    def bytes32(self) -> bytes:
        return self._read(WORD_LENGTH)

    def address(self) -> bytes:
        """Read a left-padded address word and return its 20 raw bytes.

        Raises:
            DecodeError: If any of the 12 padding bytes is non-zero.
        """
        value = self.uint256()
        if value > MAX_U160:
            raise DecodeError(f"Word {value:#x} is not a valid address")
        return value.to_bytes(20, "big")

    def _read(self, length: int) -> bytes:
        value = self._input.read(length)
        if value is None or len(value) < length:
            actual_length = 0 if value is None else len(value)
            error = (
                f"Unexpected end of input. Requested: {length}, found: {actual_length}"
            )
            raise DecodeError(error)
        return value


class Serializer:
    """Writes big-endian ABI words into a byte buffer.

    Examples:
        Basic usage::

            ser = Serializer()
            ser.uint256(1)
            ser.bytes32(b"\\x00" * 32)
            data = ser.output()
    """

    _output: io.BytesIO

    def __init__(self):
        self._output = io.BytesIO()

    def output(self) -> bytes:
        return self._output.getvalue()

    def to_bytes(self, value: bytes):
        """Write a 32-byte length word followed by the raw, unpadded bytes."""
        self.uint256(len(value))
        self._output.write(value)

    def fixed_bytes(self, value: bytes):
        self._output.write(value)

    def struct(self, value: typing.Any):
        value.serialize(self)

    def u8(self, value: int):
        if not 0 <= value <= MAX_U8:
            raise ValueError(f"Cannot encode {value} into u8")
        self._output.write(bytes([value]))

    def uint256(self, value: int):
        if not 0 <= value <= MAX_U256:
            raise ValueError(f"Cannot encode {value} into uint256")
        self._output.write(value.to_bytes(WORD_LENGTH, "big", signed=False))

    def bytes32(self, value: bytes):
        if len(value) != WORD_LENGTH:
            raise ValueError(f"Expected 32 bytes, got {len(value)}")
        self._output.write(value)

    def address(self, value: bytes):
        if len(value) != 20:
            raise ValueError(f"Expected 20 address bytes, got {len(value)}")
        self._output.write(value.rjust(WORD_LENGTH, b"\x00"))


class Test(unittest.TestCase):
    def test_uint256(self):
        ser = Serializer()
        ser.uint256(0x1626BA7E)
        self.assertEqual(ser.output(), b"\x00" * 28 + bytes.fromhex("1626ba7e"))
        self.assertEqual(Deserializer(ser.output()).uint256(), 0x1626BA7E)

    def test_uint256_range(self):
        ser = Serializer()
        with self.assertRaises(ValueError):
            ser.uint256(MAX_U256 + 1)
        with self.assertRaises(ValueError):
            ser.uint256(-1)

    def test_address_padding(self):
        raw = bytes(range(20))
        ser = Serializer()
        ser.address(raw)
        self.assertEqual(ser.output(), b"\x00" * 12 + raw)
        self.assertEqual(Deserializer(ser.output()).address(), raw)

    def test_address_rejects_dirty_padding(self):
        word = b"\x01" + b"\x00" * 31
        with self.assertRaises(DecodeError):
            Deserializer(word).address()

    def test_length_prefixed_bytes(self):
        ser = Serializer()
        ser.to_bytes(b"\xde\xad")
        self.assertEqual(len(ser.output()), 34)
        self.assertEqual(Deserializer(ser.output()).to_bytes(), b"\xde\xad")

    def test_length_past_end(self):
        ser = Serializer()
        ser.uint256(10)
        ser.fixed_bytes(b"\x00" * 4)
        with self.assertRaises(DecodeError):
            Deserializer(ser.output()).to_bytes()

    def test_underflow(self):
        with self.assertRaises(DecodeError):
            Deserializer(b"\x00" * 31).uint256()


if __name__ == "__main__":
    unittest.main()
