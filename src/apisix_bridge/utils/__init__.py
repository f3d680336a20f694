"""Logging and caller-side retry helpers."""
