"""Ambient helpers (configuration and logging) for the campaign canvas library."""
