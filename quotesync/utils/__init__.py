"""Utility helpers shared across the quotesync package."""
__all__: list[str] = []
