"""CCTP burn/attest/mint cross-chain transfers."""
