"""Logging and notification helpers."""
