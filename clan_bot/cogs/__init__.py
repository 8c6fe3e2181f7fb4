"""Slash command groups, listeners and background loops."""
