"""
Order Matching Engine

Price-time priority order books for on-chain markets, an HTTP API on top
of them, and an executioner client that settles matched pairs.
"""

__version__ = "0.3.0"
