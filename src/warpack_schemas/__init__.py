"""Packaged JSON schemas for warpack."""
