"""Medusa storefront server: commerce client, cart/auth state and auth gateway."""

__version__ = "0.1.0"
