"""Dory paywall: payment-gated, one-time-redeemable order vouchers."""

__version__ = "0.1.0"
