"""Simulated vault, escrow and flash-loan programs over an in-memory ledger."""

__version__ = "0.1.0"