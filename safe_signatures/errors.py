# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Rejection reasons raised by signature verification.

Every failure is terminal: a single bad entry aborts the whole check. Each
exception carries the wallet revert code (``GS0xx``) next to a readable
message, so callers can tell "signature wrong" from "not enough signers" from
"malformed input" without parsing strings.
"""

import unittest
from typing import Optional


class SignatureVerificationError(Exception):
    """Base exception for rejected signatures."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        if self.code:
            return f"{self.__class__.__name__} ({self.code}): {self.message}"
        return f"{self.__class__.__name__}: {self.message}"


class MalformedSignature(SignatureVerificationError):
    """The signature blob could not be decoded."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message, code)


class InvalidSignature(SignatureVerificationError):
    """ECDSA recovery failed or produced the zero address."""

    def __init__(self, message: str = "Invalid owner provided"):
        super().__init__(message, "GS026")


class NotAnOwner(SignatureVerificationError):
    """A signature resolved to an address outside the owner set."""

    def __init__(self, address: object, code: str = "GS026"):
        self.address = address
        super().__init__(f"{address} is not an owner", code)


class UnsortedOrDuplicateSigner(SignatureVerificationError):
    """Signers are not strictly ascending by address."""

    def __init__(self, address: object, previous: object):
        self.address = address
        self.previous = previous
        super().__init__(
            f"Signer {address} must be strictly greater than {previous}", "GS026"
        )


class HashNotApproved(SignatureVerificationError):
    """Neither an approval nor a direct call from the owner backs the hash."""

    def __init__(self, message: str = "Hash not approved", code: Optional[str] = None):
        super().__init__(message, code)


class ContractSignatureRejected(SignatureVerificationError):
    """A contract owner refused, or failed while validating, its signature."""

    def __init__(self, owner: object, reason: str):
        self.owner = owner
        super().__init__(
            f"Contract owner {owner} rejected signature: {reason}", "GS024"
        )


class ThresholdNotMet(SignatureVerificationError):
    """Fewer valid signatures than required."""

    def __init__(self, message: str, code: Optional[str] = "GS020"):
        super().__init__(message, code)


class DirectCallNotSupported(SignatureVerificationError):
    """The handler was called outside of a wallet's execution context."""

    def __init__(
        self, message: str = "Handler must be called through the wallet fallback"
    ):
        super().__init__(message)


class Test(unittest.TestCase):
    def test_str_includes_code(self):
        error = HashNotApproved("Hash not approved", "GS025")
        self.assertEqual(str(error), "HashNotApproved (GS025): Hash not approved")
        self.assertEqual(error.message, "Hash not approved")

    def test_str_without_code(self):
        self.assertEqual(str(HashNotApproved()), "HashNotApproved: Hash not approved")

    def test_hierarchy(self):
        for error in (
            MalformedSignature("bad"),
            InvalidSignature(),
            NotAnOwner("0x01"),
            UnsortedOrDuplicateSigner("0x01", "0x02"),
            HashNotApproved(),
            ContractSignatureRejected("0x01", "reverted"),
            ThresholdNotMet("0 of 1"),
            DirectCallNotSupported(),
        ):
            self.assertIsInstance(error, SignatureVerificationError)


if __name__ == "__main__":
    unittest.main()
