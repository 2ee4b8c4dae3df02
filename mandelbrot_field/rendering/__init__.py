"""Intensity policies and image export."""
