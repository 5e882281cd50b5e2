"""Oracle-vs-AMM arbitrage bot."""

__version__ = "0.1.0"
