"""Chain-facing services: balances, swaps, history, transfers."""
