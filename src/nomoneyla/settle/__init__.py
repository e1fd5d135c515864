"""Debt settlement: contribution checks, balance rollup and transfer planning."""
