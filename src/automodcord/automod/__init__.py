"""Automod rule engine: rules, registry, engine and action dispatcher."""
