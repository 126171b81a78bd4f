"""Availability session rotation and bucketing."""
