"""Configuration package for the checkout gateway."""
from .settings import PAYPAL_BASE_URLS, Settings, get_settings

__all__ = ["PAYPAL_BASE_URLS", "Settings", "get_settings"]
