# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
safe-signatures - threshold multi-signature verification for Safe-style wallets.

A wallet has N owners and a threshold M. A message is accepted when at least M
distinct owners vouch for the wallet's domain-separated hash of it, each in
one of four ways: an ECDSA signature, an ``eth_sign`` signature, a prior
on-chain approval, or an EIP-1271 answer from an owner that is itself a
contract. The wallet exposes the result through an EIP-1271 fallback handler.

Core Features:
- **Domain Separation**: EIP-712 ``SafeMessage`` digests bound to chain and wallet
- **Signature Blobs**: Packed 65-byte slots with a dynamic region for contract payloads
- **Threshold Verification**: Strict owner ordering, fail-closed on any bad entry
- **Approvals**: Pre-approved hashes and wallet-signed messages
- **EIP-1271**: ``isValidSignature`` for 32-byte hashes and legacy byte messages
- **Nested Wallets**: Wallets owning wallets, validated through EIP-1271

Quick Start:
    Verifying a 2-of-3 signature::

        from safe_signatures.account import Account
        from safe_signatures.address import Address
        from safe_signatures.handler import CompatibilityFallbackHandler
        from safe_signatures.signature_codec import encode_sorted
        from safe_signatures.wallet import Wallet, WalletConfig

        alice, bob, chad = (Account.generate() for _ in range(3))
        wallet = Wallet(
            Address.from_str("0x5FbDB2315678afecb367f032d93F642f64180aa3"),
            WalletConfig(
                chain_id=1,
                owners=[alice.address(), bob.address(), chad.address()],
                threshold=2,
                fallback_handler=CompatibilityFallbackHandler(),
            ),
        )

        message_hash = wallet.fallback().get_message_hash(data_hash)
        blob = encode_sorted([
            (alice.address(), alice.sign_digest(message_hash)),
            (chad.address(), chad.sign_digest(message_hash)),
        ])
        wallet.fallback().is_valid_signature(data_hash, blob)  # b"\\x16\\x26\\xba\\x7e"

Module Organization:
    Core Modules:
    - **hash_domain**: EIP-712 domain separator and message digests
    - **signature_codec**: Signature blob decoding and encoding
    - **verifier**: Threshold verification against an owner registry
    - **approvals**: Approved hashes and signed messages
    - **owners**: Owner registry protocol and owner sets
    - **handler**: EIP-1271 compatibility fallback handler
    - **wallet**: Wallet configuration and state

    Primitives:
    - **address**: 20-byte addresses with EIP-55 formatting
    - **abi**: 32-byte ABI word codec
    - **secp256k1_ecdsa**: Recoverable secp256k1 signatures
    - **account**: Owner keys for signing
    - **errors**: Rejection reasons

Development:
    Running tests::

        pip install -e ".[test]"
        python -m pytest
        behave
"""
