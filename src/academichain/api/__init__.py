"""Presentation-layer boundary."""
