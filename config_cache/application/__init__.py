"""Application: ConfigCache and its event notifications."""
