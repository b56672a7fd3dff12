# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
A wallet owned by another wallet.

The treasury wallet is a 2-of-2 of Alice and the team wallet. The team wallet
signs through EIP-1271: Bob signs the team wallet's own message hash over the
treasury's message hash, and the treasury asks the team wallet to validate
that payload as a contract signature.
"""

from typing import Dict

from safe_signatures.account import Account
from safe_signatures.address import Address
from safe_signatures.handler import CompatibilityFallbackHandler
from safe_signatures.hash_domain import keccak256
from safe_signatures.signature_codec import ContractSignature, encode_sorted
from safe_signatures.wallet import Wallet, WalletConfig, contract_owner_validator

from .common import CHAIN_ID


def main():
    handler = CompatibilityFallbackHandler()
    alice = Account.generate()
    bob = Account.generate()

    # :!:>section_1
    deployed: Dict[Address, Wallet] = {}
    team = Wallet(
        Address.from_str("0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"),
        WalletConfig(CHAIN_ID, [bob.address()], 1, handler),
    )
    treasury = Wallet(
        Address.from_str("0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0"),
        WalletConfig(CHAIN_ID, [alice.address(), team.address], 2, handler),
        contract_validator=contract_owner_validator(deployed),
    )
    deployed[team.address] = team
    deployed[treasury.address] = treasury

    print("\n=== Wallets ===")
    print(f"Team:     {team.address} ({team.owners})")
    print(f"Treasury: {treasury.address} ({treasury.owners})")  # <:!:section_1

    # :!:>section_2
    data_hash = keccak256(b"pay the invoice")
    treasury_hash = treasury.domain().digest(data_hash)
    team_hash = team.domain().digest(treasury_hash)

    team_payload = bob.sign_digest(team_hash).signature.data()
    signatures = encode_sorted(
        [
            (alice.address(), alice.sign_digest(treasury_hash)),
            (team.address, ContractSignature(team.address, team_payload)),
        ]
    )
    result = treasury.fallback().is_valid_signature(data_hash, signatures)

    print("\n=== Treasury EIP-1271 check ===")
    print(f"Signatures:  0x{signatures.hex()}")
    print(f"Magic value: 0x{result.hex()}")  # <:!:section_2


if __name__ == "__main__":
    main()
