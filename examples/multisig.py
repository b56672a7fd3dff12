# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

from safe_signatures.account import Account
from safe_signatures.address import Address
from safe_signatures.errors import SignatureVerificationError
from safe_signatures.handler import CompatibilityFallbackHandler
from safe_signatures.hash_domain import keccak256
from safe_signatures.signature_codec import ApprovedHashSignature, encode_sorted
from safe_signatures.wallet import Wallet, WalletConfig

from .common import CHAIN_ID, WALLET_ADDRESS

should_wait = True


def wait():
    """Wait for user to press Enter before starting next section."""
    if should_wait:
        input("\nPress Enter to continue...")


def main(should_wait_input=True):
    global should_wait
    should_wait = should_wait_input

    # :!:>section_1
    alice = Account.generate()
    bob = Account.generate()
    chad = Account.generate()

    print("\n=== Owner addresses ===")
    print(f"Alice: {alice.address()}")
    print(f"Bob:   {bob.address()}")
    print(f"Chad:  {chad.address()}")  # <:!:section_1

    wait()

    # :!:>section_2
    config = WalletConfig(
        chain_id=CHAIN_ID,
        owners=[alice.address(), bob.address(), chad.address()],
        threshold=2,
        fallback_handler=CompatibilityFallbackHandler(),
    )
    wallet = Wallet(Address.from_str(WALLET_ADDRESS), config)

    print("\n=== 2-of-3 wallet ===")
    print(f"Wallet address:   {wallet.address}")
    print(f"Owner set:        {wallet.owners}")
    print(f"Domain separator: 0x{wallet.domain().separator().hex()}")  # <:!:section_2

    wait()

    # :!:>section_3
    data_hash = keccak256(bytes.fromhex("baddad"))
    message_hash = wallet.fallback().get_message_hash(data_hash)

    alice_signature = alice.sign_digest(message_hash)
    bob_signature = bob.eth_sign_digest(message_hash)

    print("\n=== Individual signatures ===")
    print(f"Data hash:    0x{data_hash.hex()}")
    print(f"Message hash: 0x{message_hash.hex()}")
    print(f"Alice: {alice_signature.signature}")
    print(f"Bob:   {bob_signature.signature}")  # <:!:section_3

    wait()

    # :!:>section_4
    signatures = encode_sorted(
        [(alice.address(), alice_signature), (bob.address(), bob_signature)]
    )
    result = wallet.fallback().is_valid_signature(data_hash, signatures)

    print("\n=== EIP-1271 check with Alice and Bob ===")
    print(f"Signatures:   0x{signatures.hex()}")
    print(f"Magic value:  0x{result.hex()}")  # <:!:section_4

    wait()

    # :!:>section_5
    print("\n=== EIP-1271 check with Alice only ===")
    try:
        wallet.fallback().is_valid_signature(
            data_hash, encode_sorted([(alice.address(), alice_signature)])
        )
    except SignatureVerificationError as e:
        print(f"Rejected: {e}")  # <:!:section_5

    wait()

    # :!:>section_6
    wallet.approve_hash(chad.address(), message_hash)
    signatures = encode_sorted(
        [
            (alice.address(), alice_signature),
            (chad.address(), ApprovedHashSignature(chad.address())),
        ]
    )
    result = wallet.fallback().is_valid_signature(data_hash, signatures)

    print("\n=== EIP-1271 check with Alice and Chad's approval ===")
    print(f"Magic value:  0x{result.hex()}")  # <:!:section_6


if __name__ == "__main__":
    main()
