"""Core: settings, configuration and constants."""
