"""Checkout gateway: PayPal order protocol and multi-currency order pricing."""

__version__ = "1.0.0"
