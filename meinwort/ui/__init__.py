"""Presentation layer (macOS menu bar)."""
