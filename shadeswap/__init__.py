"""
shadeswap: confidential-order AMM client core.

Layers:
- `shadeswap.state`: immutable pool/order/config snapshots and account layouts
- `shadeswap.core`: fee and swap math, commitments, order lifecycle
- `shadeswap.integration`: Groth16 proving, circuit artifacts, wire payloads
"""

__version__ = "0.3.2"
