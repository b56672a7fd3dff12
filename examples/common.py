# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Common configuration for the safe-signatures examples.

Environment Variables:
    SAFE_CHAIN_ID: Chain id bound into every wallet digest (default: 31337,
        the local development chain)
    SAFE_WALLET_ADDRESS: Address the example wallet pretends to be deployed at
"""

import os

# :!:>section_1
# Chain id of the local development network
CHAIN_ID = int(os.getenv("SAFE_CHAIN_ID", "31337"))

# First contract address deployed by the default development account
WALLET_ADDRESS = os.getenv(
    "SAFE_WALLET_ADDRESS", "0x5FbDB2315678afecb367f032d93F642f64180aa3"
)
# <:!:section_1
