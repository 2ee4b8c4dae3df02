"""Parallel band rendering."""
