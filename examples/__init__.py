"""
safe-signatures examples.

Each example runs offline against in-memory wallets::

    # 2-of-3 wallet with mixed signature types
    python -m examples.multisig

    # A wallet owned by another wallet
    python -m examples.nested_wallet

Configuration:
    See examples.common for the environment variables that change the chain
    id and the example wallet address.
"""
