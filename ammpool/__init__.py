"""
Off-chain mirror of a layer-2 AMM pool: join/exit accounting, signing and encoding.
"""
