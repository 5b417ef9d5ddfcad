"""Application settings, constants and logging setup."""
