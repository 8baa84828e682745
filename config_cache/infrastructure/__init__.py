"""Infrastructure: key store adapters and transport exceptions."""
