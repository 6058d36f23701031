"""Shared infrastructure: errors and logging helpers."""
