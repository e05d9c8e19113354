"""HTTP surface for the wallet engine."""
