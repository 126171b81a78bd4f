"""Soft-delete aware read accessors over the stormcrew tables."""
