"""Shared helpers: logging setup and datetime utilities. No business logic."""
