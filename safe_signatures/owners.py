# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Owner set and threshold of a wallet.

Owner management (adding, removing, swapping owners, changing the threshold)
is handled elsewhere; verification only reads a registry through the
:class:`OwnerRegistry` protocol. :class:`OwnerSet` is the immutable snapshot
used by the wallet in this package.
"""

from __future__ import annotations

import unittest
from typing import FrozenSet, List, Sequence

from typing_extensions import Protocol

from .address import Address


class OwnerRegistry(Protocol):
    def is_owner(self, address: Address) -> bool:
        ...

    def threshold(self) -> int:
        ...

    def owners(self) -> List[Address]:
        ...


class OwnerSet:
    """An M-of-N owner configuration.

    Attributes:
        MIN_THRESHOLD: Minimum threshold value (1).

    Examples:
        Creating a 2-of-3 owner set::

            owners = OwnerSet([alice.address(), bob.address(), carol.address()], 2)
            owners.is_owner(alice.address())  # True
    """

    _owners: FrozenSet[Address]
    _threshold: int

    MIN_THRESHOLD = 1

    def __init__(self, owners: Sequence[Address], threshold: int):
        """Initialize an owner set.

        Raises:
            AssertionError: If owners are duplicated, reserved, or the
                threshold is outside ``1..len(owners)``.
        """
        assert len(owners) > 0, "Must have at least one owner."
        assert len(set(owners)) == len(owners), "Duplicate owner."
        for owner in owners:
            assert owner not in (
                Address.ZERO,
                Address.SENTINEL,
            ), f"Invalid owner address {owner}."
        assert (
            self.MIN_THRESHOLD <= threshold <= len(owners)
        ), f"Threshold must be between {self.MIN_THRESHOLD} and {len(owners)}."

        self._owners = frozenset(owners)
        self._threshold = threshold

    def __str__(self) -> str:
        return f"{self._threshold}-of-{len(self._owners)} owner set"

    def __len__(self) -> int:
        return len(self._owners)

    def is_owner(self, address: Address) -> bool:
        return address in self._owners

    def threshold(self) -> int:
        return self._threshold

    def owners(self) -> List[Address]:
        return sorted(self._owners)


class Test(unittest.TestCase):
    def test_owner_set(self):
        owners = [Address.from_int(0x30), Address.from_int(0x10), Address.from_int(0x20)]
        owner_set = OwnerSet(owners, 2)
        self.assertEqual(str(owner_set), "2-of-3 owner set")
        self.assertEqual(owner_set.owners(), sorted(owners))
        self.assertTrue(owner_set.is_owner(Address.from_int(0x20)))
        self.assertFalse(owner_set.is_owner(Address.from_int(0x40)))
        self.assertEqual(owner_set.threshold(), 2)

    def test_range_checks(self):
        owners = [Address.from_int(0x10 + i) for i in range(4)]
        with self.assertRaisesRegex(AssertionError, "Must have at least one owner."):
            OwnerSet([], 1)
        with self.assertRaisesRegex(AssertionError, "Threshold must be between 1 and 4."):
            OwnerSet(owners, 0)
        with self.assertRaisesRegex(AssertionError, "Threshold must be between 1 and 4."):
            OwnerSet(owners, 5)
        with self.assertRaisesRegex(AssertionError, "Duplicate owner."):
            OwnerSet([owners[0], owners[0]], 1)
        with self.assertRaisesRegex(AssertionError, "Invalid owner address"):
            OwnerSet([Address.SENTINEL], 1)
        with self.assertRaisesRegex(AssertionError, "Invalid owner address"):
            OwnerSet([Address.ZERO], 1)


if __name__ == "__main__":
    unittest.main()
