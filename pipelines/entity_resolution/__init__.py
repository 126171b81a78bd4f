"""Ordered, stop-on-first-hit contractor matching."""
