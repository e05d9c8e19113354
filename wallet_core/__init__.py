"""Non-custodial key, balance and transaction engine for a multi-chain wallet."""

__version__ = "0.1.0"
