"""Atomic re-pointing of contractor references."""
