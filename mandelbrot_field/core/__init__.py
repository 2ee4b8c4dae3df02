"""Coordinate mapping, escape-time evaluation and buffer rendering."""
