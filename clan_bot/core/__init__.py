"""Shared infrastructure: configuration-free storage, tables and helpers."""
