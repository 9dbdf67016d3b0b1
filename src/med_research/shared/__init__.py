"""Shared infrastructure: exceptions, async helpers, settings."""
