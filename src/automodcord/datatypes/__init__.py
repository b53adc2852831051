"""Typed ids and automod value types shared across the package."""
